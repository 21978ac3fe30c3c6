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


import contextlib
import os
import pathlib
import sys
from typing import IO, Any, Generator, Union


# https://stackoverflow.com/questions/17602878/how-to-handle-both-with-open-and-sys-stdout-nicely
@contextlib.contextmanager
def smart_open(
    filename: Union[str, pathlib.Path],
    mode: str = "w",
    binary: bool = False,
    create_parent_dirs: bool = True,
) -> Generator[IO[Any], None, None]:
    """Opens `filename`, or yields stdout/stdin when it is "-"."""
    full_mode = mode + ("b" if binary else "")

    if filename == "-":
        # Yield the system stream directly; closing it would close the underlying FD.
        if "w" in mode:
            yield sys.stdout.buffer if binary else sys.stdout
        else:
            yield sys.stdin.buffer if binary else sys.stdin
        return

    path = pathlib.Path(filename)
    if create_parent_dirs and "w" in mode:
        path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, full_mode) as fh:
        yield fh


def atomic_write(filename: Union[str, pathlib.Path], content: Union[str, bytes]) -> None:
    """
    Writes `content` to a temporary sibling file, fsyncs it and renames it over `filename`.
    The target is always either the previous or the new complete content.
    """
    binary = isinstance(content, bytes)
    temp_file = str(filename) + ".tmp"

    with smart_open(temp_file, "w", binary=binary) as file_handle:
        file_handle.write(content)
        file_handle.flush()
        os.fsync(file_handle.fileno())

    os.replace(temp_file, filename)


def delete_silently(filename: Union[str, pathlib.Path]) -> None:
    try:
        os.remove(filename)
    except OSError:
        pass
