"""
Podman adapter — container engine operations.

Pulls the images a deployment needs before its services start, so the
first start does not stall on a download. Uses the podman CLI — never
the REST API.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from autosetup.adapters.base import Adapter
from autosetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

# Images tagged under this namespace only exist in local storage.
LOCAL_IMAGE_PREFIX = "localhost/"


class PodmanAdapter(Adapter):
    """Image prefetcher and engine probes."""

    def __init__(
        self,
        runner,
        binary: str = "podman",
        local_prefix: str = LOCAL_IMAGE_PREFIX,
    ):
        super().__init__(runner)
        self._binary = binary
        self._local_prefix = local_prefix

    @property
    def name(self) -> str:
        return "podman"

    @property
    def binary(self) -> str:
        return self._binary

    def is_available(self) -> bool:
        return self._which(self._binary)

    def is_local_only(self, image: str) -> bool:
        """Whether ``image`` is a local tag with no remote to pull from."""
        return bool(self._local_prefix) and image.startswith(self._local_prefix)

    def prefetch(self, image: str) -> Receipt:
        """Pull one image into local storage.

        Local-only tags are skipped without touching the network and
        count as success.
        """
        if self.is_local_only(image):
            description = f"Skip pull (local image): {image}"
            self.ledger.warn(description)
            return Receipt.skip(adapter=self.name, operation=description, reason="local image")

        return self.runner.run(
            f"Pull image: {image}",
            [self._binary, "pull", image],
            stream=True,
            adapter=self.name,
        )

    def prefetch_all(self, images: Iterable[str]) -> list[Receipt]:
        """Pull each image independently; one failure never blocks the rest."""
        return [self.prefetch(image) for image in images]

    def image_exists(self, image: str) -> bool:
        return self.runner.probe(
            [self._binary, "image", "exists", image], adapter=self.name
        ).ok

    def version(self) -> str | None:
        """``podman --version`` output, or None when the engine is absent."""
        receipt = self.runner.probe([self._binary, "--version"], adapter=self.name)
        if not receipt.ok:
            return None
        return receipt.output or None
