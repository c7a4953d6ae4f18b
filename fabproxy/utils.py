"""
Address helpers shared by the translator and the receipt reconstructor.
"""
from web3 import Web3

# 20 zero bytes; as a callee it marks a contract-creation transaction
ZERO_ADDRESS = bytes(20)
ZERO_ADDRESS_HEX = ZERO_ADDRESS.hex()


def strip_0x(value: str) -> str:
    """
    Return the part of ``value`` after the last "0x".

    This is not an address parser: "0xab0xcd" yields "cd" and malformed
    input is passed through untouched.

    Args:
        value: Hex string with or without a "0x" prefix

    Returns:
        The string with everything up to the last "0x" removed
    """
    return value.split("0x")[-1]


def is_zero_address(address: bytes) -> bool:
    """Check whether ``address`` is the 20-byte zero address"""
    return address == ZERO_ADDRESS


def to_display(value: bytes) -> str:
    """Render bytes as "0x" followed by lowercase hex"""
    return Web3.to_hex(value)
