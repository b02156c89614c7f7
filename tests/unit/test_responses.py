"""
Unit tests for response envelopes.
"""

from domain.exceptions import NotFoundError, MaxDepthExceeded
from operations.responses import success_response, error_response, run_operation


def test_success_response():
    assert success_response({"id": 1}, "Created") == {"success": True, "message": "Created", "data": {"id": 1}}
    assert success_response() == {"success": True, "message": ""}


def test_error_response_for_domain_error():
    response = error_response(MaxDepthExceeded("Too deep", details={"max_depth": 3}))
    assert response == {
        "success": False,
        "message": "Too deep",
        "error_kind": "max_depth_exceeded",
        "details": {"max_depth": 3},
    }


def test_error_response_hides_unexpected_errors():
    response = error_response(RuntimeError("secret connection string"))
    assert response == {"success": False, "message": "Internal error", "error_kind": "internal_error"}


def test_run_operation():
    def find(item_id):
        if item_id != "a1":
            raise NotFoundError("Article not found")
        return {"id": item_id}

    def broken():
        raise KeyError("boom")

    assert run_operation(find, "a1", message="Found")["data"] == {"id": "a1"}
    assert run_operation(find, "zz")["error_kind"] == "not_found"
    assert run_operation(broken)["error_kind"] == "internal_error"
