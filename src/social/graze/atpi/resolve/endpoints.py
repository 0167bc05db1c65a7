"""
Catalogue of AT Protocol hosts used as fallbacks for handle resolution.

Any PDS on the network can answer com.atproto.identity.resolveHandle, so when DNS and well-known resolution fail the
directory strategy asks the primary public endpoint first and then a handful of randomly chosen regional hosts.
"""

import random
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class PdsEndpointPool(BaseModel):
    """
    Read-only pool of one primary endpoint URL plus regional host names.

    Regional and custom entries are bare host names; ``https://`` is prepended when they are queried.
    """

    model_config = ConfigDict(frozen=True)

    primary: str
    regions: Dict[str, Tuple[str, ...]] = {}
    custom: Tuple[str, ...] = ()

    def all_hosts(self) -> List[str]:
        hosts: List[str] = []
        for region_hosts in self.regions.values():
            hosts.extend(region_hosts)
        hosts.extend(self.custom)
        return list(dict.fromkeys(hosts))

    def draw(self, count: int, rng: Optional[random.Random] = None) -> List[str]:
        """Pick up to ``count`` distinct hosts uniformly at random, never repeating one."""
        hosts = self.all_hosts()
        rng = rng or random.Random()
        return rng.sample(hosts, min(count, len(hosts)))


US_EAST_HOSTS = tuple(
    f"{name}.us-east.host.bsky.network"
    for name in [
        "amanita",
        "blusher",
        "coral",
        "earthstar",
        "elfcup",
        "enoki",
        "helvella",
        "inkcap",
        "lionsmane",
        "lobster",
        "meadow",
        "morel",
        "oyster",
        "panthercap",
        "parasol",
        "porcini",
        "puffball",
        "reishi",
        "scarletina",
        "shiitake",
        "shimeji",
        "splitgill",
        "truffle",
        "velvetfoot",
    ]
)

US_WEST_HOSTS = tuple(
    f"{name}.us-west.host.bsky.network"
    for name in [
        "agaric",
        "agrocybe",
        "bankera",
        "blewit",
        "boletus",
        "bracket",
        "brittlegill",
        "button",
        "calocybe",
        "chaga",
        "chanterelle",
        "conocybe",
        "cordyceps",
        "cortinarius",
        "cremini",
        "dapperling",
        "entoloma",
        "fibercap",
        "fuzzyfoot",
        "ganoderma",
        "goldenear",
        "gomphidius",
        "gomphus",
        "grisette",
        "hebeloma",
        "hedgehog",
        "hollowfoot",
        "hydnum",
        "hygrophorus",
        "leccinum",
        "lepista",
        "magic",
        "maitake",
        "matsutake",
        "mazegill",
        "milkcap",
        "mottlegill",
        "mycena",
        "oysterling",
        "panus",
        "pholiota",
        "pioppino",
        "poisonpie",
        "polypore",
        "psathyrella",
        "rooter",
        "russula",
        "scalycap",
        "shaggymane",
        "stinkhorn",
        "suillus",
        "verpa",
        "waxcap",
        "witchesbutter",
        "woodear",
        "woodtuft",
        "yellowfoot",
    ]
)

DEFAULT_PDS_ENDPOINTS = PdsEndpointPool(
    primary="https://public.api.bsky.app",
    regions={"us_east": US_EAST_HOSTS, "us_west": US_WEST_HOSTS},
)
