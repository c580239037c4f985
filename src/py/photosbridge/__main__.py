import sys

from .config import ROOT
from .server import run
from .stores.files import DirectoryAssetStore
from .utils.logging import info


def main(args: list[str] | None = None) -> None:
	args = sys.argv[1:] if args is None else args
	root = args[0] if args else ROOT or "."
	store = DirectoryAssetStore(root)
	info("Starting PhotosBridge on a local directory", Root=str(store.root))
	run(store)


if __name__ == "__main__":
	main()

# EOF
