"""
ABI codec - contract JSON loading plus call / constructor encoding.

Accepts both Truffle artifacts (``bytecode`` is a hex string) and Foundry
artifacts (``bytecode.object``). Encoding uses eth-abi; selectors use
Keccak-256 from eth-hash.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Sequence

from eth_abi import decode, encode
from eth_hash.auto import keccak


def load_contract_json(path: Path) -> dict[str, Any]:
    """
    Load a compiled contract artifact.

    Args:
        path: Path to the artifact JSON

    Returns:
        The artifact dict; guaranteed to contain an ``abi`` list

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the artifact has no ABI
    """
    if not path.exists():
        raise FileNotFoundError(f"Contract artifact not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        artifact = json.load(f)

    if not isinstance(artifact.get("abi"), list):
        raise ValueError(f"No ABI in artifact {path}")

    return artifact


def artifact_bytecode(contract_json: dict[str, Any]) -> str:
    """
    Return the 0x-prefixed deployment bytecode of an artifact.

    Raises:
        ValueError: If the artifact carries no bytecode
    """
    bytecode = contract_json.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if not bytecode or bytecode in ("0x", "0x0"):
        raise ValueError("No bytecode in contract artifact")
    return _prefixed(bytecode)


def _prefixed(data: str) -> str:
    return data if data.startswith("0x") else "0x" + data


def _find_function(abi: Sequence[dict], function_name: str) -> dict:
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == function_name:
            return entry
    raise ValueError(f"Function {function_name} not found in ABI")


def _input_types(entry: dict) -> list[str]:
    return [inp["type"] for inp in entry.get("inputs", [])]


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak256(signature)."""
    # Keccak-256 != NIST SHA3-256; hashlib.sha3_256 gives the wrong selector.
    return keccak(signature.encode("utf-8"))[:4]


def encode_function_call(
    abi: Sequence[dict], function_name: str, args: Sequence[Any]
) -> str:
    """
    ABI-encode a function call.

    Args:
        abi: Contract ABI
        function_name: Function to call
        args: Function arguments

    Returns:
        0x-prefixed hex calldata
    """
    func = _find_function(abi, function_name)
    input_types = _input_types(func)
    selector = function_selector(f"{function_name}({','.join(input_types)})")
    encoded_args = encode(input_types, list(args)) if args else b""
    return "0x" + selector.hex() + encoded_args.hex()


def decode_function_result(abi: Sequence[dict], function_name: str, data: str) -> Any:
    """
    ABI-decode the return data of a call.

    Returns:
        None for functions without outputs, the single value for one
        output, otherwise the decoded tuple
    """
    func = _find_function(abi, function_name)
    output_types = [out["type"] for out in func.get("outputs", [])]
    if not output_types:
        return None

    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    decoded = decode(output_types, raw)

    if len(decoded) == 1:
        return decoded[0]
    return decoded


def encode_constructor_args(abi: Sequence[dict], args: Sequence[Any]) -> bytes:
    """
    ABI-encode constructor arguments.

    Raises:
        ValueError: If args are given but the ABI has no constructor
    """
    if not args:
        return b""
    for entry in abi:
        if entry.get("type") == "constructor":
            return encode(_input_types(entry), list(args))
    raise ValueError("Constructor not found in ABI, but constructor args were provided.")


def creation_data(abi: Sequence[dict], bytecode: str, args: Sequence[Any] = ()) -> str:
    """Deployment payload: bytecode followed by the encoded constructor args."""
    return _prefixed(bytecode) + encode_constructor_args(abi, args).hex()


class ContractInterface:
    """An ABI bound to an (optional) address; the handle's codec view."""

    def __init__(self, abi: Sequence[dict], address: Optional[str] = None) -> None:
        self.abi = list(abi)
        self.address = address

    def encode_call(self, function_name: str, args: Sequence[Any] = ()) -> str:
        return encode_function_call(self.abi, function_name, args)

    def decode_result(self, function_name: str, data: str) -> Any:
        return decode_function_result(self.abi, function_name, data)

    def deploy_data(self, bytecode: str, args: Sequence[Any] = ()) -> str:
        return creation_data(self.abi, bytecode, args)

    def function_names(self) -> list[str]:
        return [e["name"] for e in self.abi if e.get("type") == "function"]

    def __repr__(self) -> str:
        return f"ContractInterface(address={self.address!r}, functions={len(self.function_names())})"
