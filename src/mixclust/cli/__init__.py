# The entry point lives at mixclust.cli.main:main; only the CLI class is
# re-exported so that "mixclust.cli.main" keeps naming the module.
from .main import MixclustCLI

__all__ = ["MixclustCLI"]
