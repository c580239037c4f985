import asyncio
import os
from pathlib import Path

from ..assets import AssetContent, AssetStore, Authorization, RequestOptions
from ..utils.logging import debug

# Uniform type identifiers, as the platform photo library would report them.
FORMAT_TAGS: dict[str, str] = {
	".png": "public.png",
	".heic": "public.heic",
	".heif": "public.heif",
	".gif": "com.compuserve.gif",
	".jpg": "public.jpeg",
	".jpeg": "public.jpeg",
	".tif": "public.tiff",
	".tiff": "public.tiff",
	".webp": "org.webmproject.webp",
}


def formatTag(path: Path) -> str:
	suffix = path.suffix.lower()
	return FORMAT_TAGS.get(suffix, f"dyn.{suffix[1:] or 'data'}")


class DirectoryAssetStore(AssetStore):
	"""An asset store backed by a local directory, where the asset id is
	the path of the file relative to the root."""

	def __init__(self, root: str | Path | None = None):
		super().__init__()
		self.root: Path = (
			root if isinstance(root, Path) else Path(root or ".")
		).absolute()

	def authorization(self) -> Authorization:
		if self.root.is_dir() and os.access(self.root, os.R_OK | os.X_OK):
			return Authorization.Authorized
		else:
			return Authorization.Denied

	def resolvePath(self, id: str) -> Path | None:
		"""Returns the file for the given id, as long as it is within
		the root."""
		if not id or "\x00" in id:
			return None
		local_path = self.root.joinpath(id.lstrip("/")).resolve()
		root = self.root.resolve()
		if not local_path.parts[: len(parts := root.parts)] == parts:
			return None
		return local_path if local_path.is_file() else None

	async def lookup(self, id: str) -> Path | None:
		return self.resolvePath(id)

	async def load(self, asset: Path, options: RequestOptions) -> AssetContent | None:
		debug("Loading asset", Path=str(asset), Version=options.version.value)
		# NOTE: Reading happens off the event loop, images can be large.
		data = await asyncio.get_running_loop().run_in_executor(
			None, asset.read_bytes
		)
		return AssetContent(data, formatTag(asset))


# EOF
