# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later

from .catalogdb import CatalogDB
from .catalog import Catalog
from .records.track import Track
