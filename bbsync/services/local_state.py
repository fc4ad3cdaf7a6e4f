"""
Local mirror directory inspection for bbsync.
"""

import os
import stat
from pathlib import Path
from typing import Union

from ..domain.local_state import LocalState


class LocalStateProbe:
    """Classifies what occupies ``target_dir/<slug>``.

    Uses ``lstat`` so a symlink is reported as a conflict instead of being
    followed.
    """

    def __init__(self, target_dir: Union[str, Path]):
        self.target_dir = Path(target_dir)

    def path_for(self, slug: str) -> Path:
        return self.target_dir / slug

    def probe(self, slug: str) -> LocalState:
        path = self.path_for(slug)
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            return LocalState.absent()
        except OSError as e:
            return LocalState.conflict(str(e))

        if stat.S_ISDIR(st.st_mode):
            return LocalState.present()
        return LocalState.conflict("exists but is not a directory")
