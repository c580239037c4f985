"""
In-memory asset store example

Shows how to plug a custom asset store into the bridge, and how to follow
its status from the outside.

Usage:
    python memory.py

Test with:
    curl -i http://localhost:27345/
    curl -i "http://localhost:27345/image?id=pixel"
"""

from photosbridge import (
	AssetContent,
	AssetStore,
	Authorization,
	BridgeState,
	RequestOptions,
	run,
)
from photosbridge.utils.logging import info

# A 1x1 transparent GIF
PIXEL: bytes = bytes.fromhex(
	"47494638396101000100800000000000ffffff21f90401000000002c00000000010001000002024401003b"
)


class MemoryStore(AssetStore):
	def __init__(self, assets: dict[str, AssetContent]):
		self.assets = assets

	def authorization(self) -> Authorization:
		return Authorization.Authorized

	async def lookup(self, id: str) -> str | None:
		return id if id in self.assets else None

	async def load(self, asset: str, options: RequestOptions) -> AssetContent | None:
		return self.assets.get(asset)


if __name__ == "__main__":
	state = BridgeState()
	state.subscribe(
		lambda status, event: status and info("Status changed", Status=status.label)
	)
	run(MemoryStore({"pixel": AssetContent(PIXEL, "com.compuserve.gif")}), state=state)

# EOF
