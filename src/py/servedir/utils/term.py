from typing import ClassVar, TextIO
import os
import sys

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ


def hasColor(stream: TextIO = sys.stderr) -> bool:
	"""Tells if colors should be used when writing to the given stream."""
	if FORCE_COLOR:
		return True
	elif NO_COLOR:
		return False
	else:
		isatty = getattr(stream, "isatty", None)
		return bool(isatty and isatty())


COLOR: bool = hasColor()


class Term:
	BOLD: ClassVar[str] = "\033[1m" if COLOR else ""
	NORMAL: ClassVar[str] = "\033[0m" if COLOR else ""
	RESET: ClassVar[str] = "\033[0m" if COLOR else ""

	@staticmethod
	def Color(color: int, bold: bool = False) -> str:
		return f"\033[{'1' if bold else '0'};38;5;{color}m" if COLOR else ""


# EOF
