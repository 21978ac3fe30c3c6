# MIT License
#
# Copyright (c) 2018 Evgeny Medvedev, evge.medvedev@gmail.com
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.


from typing import Any, Optional, Union

from eth_utils import to_checksum_address
from eth_utils import to_int
from hexbytes import HexBytes

from utils.logger_utils import get_logger

logger = get_logger("Formatter Utils")


def hex_to_dec(hex_string: Union[str, int, None]) -> Optional[int]:
    """
    Converts a hex quantity ("0x1a") to a decimal integer. Integers pass through.
    """
    if hex_string is None:
        return None
    if isinstance(hex_string, int):
        return hex_string
    try:
        return to_int(hexstr=hex_string)
    except (ValueError, TypeError):
        logger.warning(f"Invalid hex string for conversion: {hex_string}")
        return None


def to_normalized_address(address: Optional[str]) -> Optional[str]:
    """
    Converts an address to its EIP-55 checksum form.
    Values eth_utils rejects are lower-cased instead so callers still get a stable key.
    """
    if address is None or not isinstance(address, str):
        return None

    try:
        return to_checksum_address(address)
    except ValueError:
        return address.lower()


def to_hex_string(value: Any) -> Optional[str]:
    """Renders bytes-like values as a 0x-prefixed hex string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(HexBytes(value)).hex()


def validate_block_range(range_start_incl: int, range_end_incl: int) -> None:
    """
    Validate an inclusive block range.

    Raises:
        ValueError: If either bound is negative or the range is reversed.
    """
    for block_number in (range_start_incl, range_end_incl):
        if block_number < 0:
            raise ValueError(f"Block number must be greater than or equal to 0, got {block_number}")

    if range_end_incl < range_start_incl:
        raise ValueError(
            f"range_end ({range_end_incl}) must be greater than or equal to range_start ({range_start_incl})"
        )
