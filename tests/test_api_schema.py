"""Tests for the inbound query and outbound answer bodies."""

import pytest
from pydantic import ValidationError

from journey_engine.schemas.api_schema import QueryRequest


class TestQueryRequest:
    def test_camel_case_body(self):
        request = QueryRequest.model_validate({
            "customerId": "cust-1",
            "intent": "HOSPITAL_LOCATOR",
            "query": "hello",
            "options": {"communicationMode": "SMS"},
        })
        assert request.customer_id == "cust-1"
        assert request.options.communication_mode == "SMS"

    def test_options_optional(self):
        request = QueryRequest.model_validate(
            {"customerId": "cust-1", "intent": "HOSPITAL_LOCATOR", "query": "hello"}
        )
        assert request.options.communication_mode is None

    @pytest.mark.parametrize("field", ["customerId", "intent", "query"])
    def test_blank_values_rejected(self, field):
        body = {"customerId": "cust-1", "intent": "HOSPITAL_LOCATOR", "query": "hello"}
        body[field] = "   "
        with pytest.raises(ValidationError):
            QueryRequest.model_validate(body)

    def test_missing_field_rejected(self):
        with pytest.raises(ValidationError):
            QueryRequest.model_validate({"customerId": "cust-1", "query": "hello"})
