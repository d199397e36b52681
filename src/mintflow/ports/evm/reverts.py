"""
Revert payload decoding.

Maps the revert data returned by a node (``Error(string)`` payloads, custom
error selectors, or plain node messages) to a human-readable reason and a
structured ``RevertCode``.
"""

from typing import Dict, Optional, Tuple, Union

from eth_abi import decode
from eth_utils import function_signature_to_4byte_selector, to_bytes
from web3.exceptions import ContractLogicError

from ...engine.exceptions import RevertCode

_ERROR_STRING_SELECTOR: bytes = function_signature_to_4byte_selector("Error(string)")

_CUSTOM_ERRORS: Dict[bytes, Tuple[str, RevertCode]] = {
    function_signature_to_4byte_selector(signature): (name, code)
    for signature, name, code in (
        ("ERC20InsufficientAllowance(address,uint256,uint256)", "ERC20InsufficientAllowance", RevertCode.INSUFFICIENT_ALLOWANCE),
        ("ERC20InsufficientBalance(address,uint256,uint256)", "ERC20InsufficientBalance", RevertCode.INSUFFICIENT_BALANCE),
        ("AlreadyMinted()", "AlreadyMinted", RevertCode.ALREADY_MINTED),
    )
}

# Reason strings emitted by OpenZeppelin 4.x tokens and the NFT contract.
_REASON_CODES: Dict[str, RevertCode] = {
    "erc20: insufficient allowance": RevertCode.INSUFFICIENT_ALLOWANCE,
    "erc20: transfer amount exceeds allowance": RevertCode.INSUFFICIENT_ALLOWANCE,
    "erc20: transfer amount exceeds balance": RevertCode.INSUFFICIENT_BALANCE,
    "already minted": RevertCode.ALREADY_MINTED,
}

_NODE_PREFIX = "execution reverted"


def _as_bytes(data: Union[str, bytes, None]) -> Optional[bytes]:
    if data is None:
        return None
    if isinstance(data, bytes):
        return data
    if isinstance(data, str) and data.startswith("0x"):
        try:
            return to_bytes(hexstr=data)
        except ValueError:
            return None
    return None


def _strip_node_prefix(message: str) -> str:
    text = message.strip()
    if text.lower().startswith(_NODE_PREFIX):
        text = text[len(_NODE_PREFIX):].lstrip(": ").strip()
    return text


def decode_revert_data(data: Union[str, bytes, None], message: str = "") -> Tuple[str, RevertCode]:
    """
    Decode raw revert data into ``(reason, code)``.

    Args:
        data: Revert payload (hex string or bytes), if the node returned one.
        message: Node-provided message, used when the payload is missing or
            not recognised.

    Returns:
        Tuple of a readable reason and its RevertCode (UNKNOWN when unmapped).
    """
    # custom errors are sometimes reported with the payload as the message
    payload = _as_bytes(data) or _as_bytes(message.strip())
    if payload and len(payload) >= 4:
        selector = payload[:4]
        if selector == _ERROR_STRING_SELECTOR:
            try:
                (reason,) = decode(["string"], payload[4:])
            except Exception:
                reason = _strip_node_prefix(message) or "malformed revert string"
            return reason, _REASON_CODES.get(reason.strip().lower(), RevertCode.UNKNOWN)
        if selector in _CUSTOM_ERRORS:
            return _CUSTOM_ERRORS[selector]

    reason = _strip_node_prefix(message) or "execution reverted"
    return reason, _REASON_CODES.get(reason.lower(), RevertCode.UNKNOWN)


def decode_contract_error(exc: ContractLogicError) -> Tuple[str, RevertCode]:
    """Decode a web3 ``ContractLogicError`` (or ``ContractCustomError``)."""
    message = getattr(exc, "message", None) or str(exc)
    return decode_revert_data(getattr(exc, "data", None), message)
