"""
ERC-20 metadata reader.

Encodes view-function calls with eth-abi and decodes the results; the
minimal ABI is embedded since only the standard metadata getters are used.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_hash.auto import keccak

from .client import ChainClient
from ..units import parse_address, to_checksum_address

# Wrapped ETH on Arbitrum Sepolia
DEFAULT_TOKEN_ADDRESS = "0x2836ae2ea2c013acd38028fd0c77b92cccfa2ee4"

ERC20_ABI: list[dict[str, Any]] = [
    {"type": "function", "name": "name", "inputs": [], "outputs": [{"type": "string"}]},
    {"type": "function", "name": "symbol", "inputs": [], "outputs": [{"type": "string"}]},
    {"type": "function", "name": "decimals", "inputs": [], "outputs": [{"type": "uint8"}]},
    {"type": "function", "name": "totalSupply", "inputs": [], "outputs": [{"type": "uint256"}]},
    {
        "type": "function",
        "name": "balanceOf",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"type": "uint256"}],
    },
]


def load_abi(path: Path) -> list[dict[str, Any]]:
    """
    Load an ABI from a JSON file.

    Accepts a bare ABI list or a compiler artifact with an ``abi`` key
    (Foundry and Hardhat both write the latter).

    Raises:
        ValueError: If the file is not JSON or holds no ABI list
    """
    with Path(path).open("r", encoding="utf-8") as f:
        try:
            artifact = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path} is not valid JSON: {exc}") from exc

    abi = artifact.get("abi") if isinstance(artifact, dict) else artifact
    if not isinstance(abi, list):
        raise ValueError(f"{path} does not contain an ABI list")
    return abi


def _find_function(abi: list, function_name: str) -> dict:
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == function_name:
            return entry
    raise ValueError(f"Function {function_name} not found in ABI")


def encode_call(abi: list, function_name: str, args: list) -> bytes:
    """ABI-encode a function call: 4-byte selector followed by the arguments."""
    func = _find_function(abi, function_name)
    input_types = [inp["type"] for inp in func.get("inputs", [])]
    sig = f"{function_name}({','.join(input_types)})"

    # Keccak-256, not NIST SHA3-256
    selector = keccak(sig.encode("utf-8"))[:4]

    if args:
        return selector + encode(input_types, args)
    return selector


def decode_result(abi: list, function_name: str, data: bytes) -> Any:
    """Decode a call result; single-output functions return the bare value."""
    func = _find_function(abi, function_name)
    output_types = [out["type"] for out in func.get("outputs", [])]
    if not output_types:
        return None

    try:
        decoded = decode(output_types, data)
    except DecodingError as exc:
        raise ValueError(f"Cannot decode {function_name}() result: {exc}") from exc
    if len(decoded) == 1:
        return decoded[0]
    return decoded


@dataclass(frozen=True)
class TokenInfo:
    address: str
    name: str
    symbol: str
    decimals: int
    total_supply: int


class Erc20Reader:
    def __init__(
        self,
        client: ChainClient,
        address: bytes | str,
        abi: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self.client = client
        self.abi = abi if abi is not None else ERC20_ABI
        self.address = to_checksum_address(
            parse_address(address) if isinstance(address, str) else address
        )

    def read(self, function_name: str, *args: Any) -> Any:
        data = self.client.call(
            self.address, encode_call(self.abi, function_name, list(args))
        )
        if not data:
            raise ValueError(
                f"{self.address} returned no data for {function_name}(); "
                "is it an ERC-20 contract?"
            )
        return decode_result(self.abi, function_name, data)

    def balance_of(self, owner: bytes | str) -> int:
        if isinstance(owner, str):
            owner = parse_address(owner)
        return self.read("balanceOf", to_checksum_address(owner))

    def info(self) -> TokenInfo:
        return TokenInfo(
            address=self.address,
            name=self.read("name"),
            symbol=self.read("symbol"),
            decimals=self.read("decimals"),
            total_supply=self.read("totalSupply"),
        )
