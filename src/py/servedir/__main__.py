import argparse
import os
from pathlib import Path

from .config import ServerConfig, HOST, PORT, ROOT
from .server import run
from .services.files import FileService


def main(args: list[str] | None = None) -> None:
	parser = argparse.ArgumentParser(
		prog="servedir",
		description="Serves the files of a local directory over HTTP, with directory listings",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"root",
		metavar="ROOT",
		nargs="?",
		default=ROOT,
		help="The directory to serve",
	)
	parser.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=int,
		default=PORT,
		help="Specifies the port",
	)
	parser.add_argument(
		"-H",
		"--host",
		action="store",
		dest="host",
		default=HOST,
		help="Specifies the address to listen on",
	)
	parser.add_argument(
		"-t",
		"--timeout",
		action="store",
		dest="timeout",
		type=float,
		default=ServerConfig._field_defaults["timeout"],
		help="Seconds to wait for a client to send its request",
	)
	parser.add_argument(
		"-q",
		"--quiet",
		action="store_true",
		dest="quiet",
		help="Does not log requests",
	)
	options = parser.parse_args(args=args)
	root = Path(options.root).expanduser()
	if not os.path.isdir(root):
		parser.error(f"not a directory: {options.root}")
	config = ServerConfig.Make(
		root,
		host=options.host,
		port=options.port,
		timeout=options.timeout,
		logRequests=not options.quiet and ServerConfig._field_defaults["logRequests"],
	)
	run(FileService(config), config=config)


if __name__ == "__main__":
	main()

# EOF
