# recovery_core/tests/helpers.py


def error_of(res):
    """The error object of an envelope response."""
    body = res.json()
    assert "error" in body, body
    return body["error"]


def results_of(res):
    """List payload of either a plain list or a paginated response."""
    body = res.json()
    if isinstance(body, dict) and "results" in body:
        return body["results"]
    return body
