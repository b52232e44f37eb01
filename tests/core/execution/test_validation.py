"""
Tests for deployment request validation.
"""

import pytest

from chaindeploy.core.execution.models import DeploymentRequest
from chaindeploy.core.execution.validation import (
    describe_params,
    validate_bytecode,
    validate_constructor_args,
    validate_private_key,
    validate_request,
    validate_tx_hash,
)
from chaindeploy.core.recovery import ValidationError


class TestBytecodeValidation:
    """Tests for validate_bytecode."""

    def test_valid_bytecode_returned_unchanged(self, token_bytecode):
        assert validate_bytecode(token_bytecode) == token_bytecode

    def test_too_short(self):
        with pytest.raises(ValidationError, match="too short: 2 bytes, minimum is 10"):
            validate_bytecode("0x6000")

    def test_minimum_is_configurable(self):
        assert validate_bytecode("0x6000", min_bytes=2) == "0x6000"

    def test_missing_prefix(self):
        with pytest.raises(ValidationError, match="must start with 0x"):
            validate_bytecode("6080604052348015600f5760")

    def test_odd_length_rejected_not_padded(self):
        with pytest.raises(ValidationError, match="odd number of hex characters"):
            validate_bytecode("0x6080604052348015600f576")

    def test_non_hex(self):
        with pytest.raises(ValidationError, match="non-hexadecimal"):
            validate_bytecode("0x6080__$LibraryPlaceholder$__6080604052")

    @pytest.mark.parametrize("bytecode", ["", "0x", None, 1234])
    def test_empty_or_wrong_type(self, bytecode):
        with pytest.raises(ValidationError):
            validate_bytecode(bytecode)


class TestConstructorValidation:
    """Tests for constructor arity checks."""

    def test_matching_arity_returns_inputs(self, token_abi):
        inputs = validate_constructor_args(token_abi, ["Token", 1000])
        assert [i["name"] for i in inputs] == ["name", "supply"]

    def test_arity_mismatch_lists_every_parameter(self, token_abi):
        with pytest.raises(ValidationError) as exc_info:
            validate_constructor_args(token_abi, ["Token"])

        error = exc_info.value
        assert "Constructor expects 2 parameters but 1 provided" in error.message
        assert "name (string), supply (uint256)" in error.message
        assert error.details["expected"] == [
            {"name": "name", "type": "string"},
            {"name": "supply", "type": "uint256"},
        ]

    def test_params_without_constructor(self):
        abi = [{"type": "function", "name": "f", "inputs": []}]

        with pytest.raises(ValidationError, match="no constructor found in ABI"):
            validate_constructor_args(abi, [1])

    def test_no_constructor_no_params(self):
        assert validate_constructor_args([], []) == []

    def test_unnamed_params_described_by_position(self):
        inputs = [{"name": "", "type": "address"}, {"type": "bool"}]
        assert describe_params(inputs) == "arg0 (address), arg1 (bool)"


class TestRequestValidation:
    """Tests for validate_request."""

    def _request(self, token_bytecode, token_abi, private_key, **overrides):
        fields = dict(
            bytecode=token_bytecode,
            abi=token_abi,
            network="sepolia",
            credential=private_key,
            constructor_params=["Token", 1000],
        )
        fields.update(overrides)
        return DeploymentRequest(**fields)

    def test_valid_request(self, token_bytecode, token_abi, private_key):
        inputs = validate_request(self._request(token_bytecode, token_abi, private_key))
        assert len(inputs) == 2

    @pytest.mark.parametrize(
        "overrides,match",
        [
            ({"network": ""}, "Network is required"),
            ({"credential": "0x1234"}, "Signing key"),
            ({"abi": {"type": "constructor"}}, "ABI must be a list"),
            ({"gas_limit": 0}, "gas_limit must be positive"),
            ({"gas_price": -1}, "gas_price must be positive"),
            ({"value": -5}, "value must not be negative"),
            ({"confirmations": -1}, "confirmations must not be negative"),
            ({"constructor_params": []}, "Constructor expects 2 parameters"),
        ],
    )
    def test_invalid_fields(self, token_bytecode, token_abi, private_key, overrides, match):
        with pytest.raises(ValidationError, match=match):
            validate_request(self._request(token_bytecode, token_abi, private_key, **overrides))

    def test_request_repr_masks_credential(self, token_bytecode, token_abi, private_key):
        request = self._request(token_bytecode, token_abi, private_key)
        assert private_key not in repr(request)
        assert "credential=***" in repr(request)


class TestIdentifierValidation:
    """Tests for key and hash format checks."""

    def test_private_key_prefix_added(self, private_key):
        assert validate_private_key(private_key[2:]) == private_key

    def test_tx_hash(self, tx_hash):
        assert validate_tx_hash(tx_hash) == tx_hash

    def test_tx_hash_lowercased(self, tx_hash):
        assert validate_tx_hash(tx_hash.upper().replace("0X", "0x")) == tx_hash

    @pytest.mark.parametrize("value", ["0x1234", "a1" * 32, None, "0x" + "zz" * 32])
    def test_bad_tx_hash(self, value):
        with pytest.raises(ValidationError, match="Invalid transaction hash"):
            validate_tx_hash(value)
