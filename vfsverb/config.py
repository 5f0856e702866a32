"""Global configuration: constants, baselines, defaults."""

from types import MappingProxyType

# Folder inside the enlistment root that marks it as a VFS enlistment
DOT_FOLDER = ".vfs"

# Working directory (the git repo) relative to the enlistment root
WORKING_DIRECTORY_NAME = "src"

# Name of the hooks executable that ships beside the tool
HOOKS_EXECUTABLE_NAME = "VFS.Hooks"

# Virtualization filter driver service
SERVICE_NAME = "vfsflt"

# Oldest git the tool can drive.  The platform tag must match exactly.
MINIMUM_GIT_VERSION = "2.14.1.vfs.1.0"

# Relative endpoint serving the allowed client version ranges
REMOTE_CONFIG_ENDPOINT = "vfs/config"
REMOTE_CONFIG_TIMEOUT = 30.0

GIT_NOT_INSTALLED_ERROR = (
    "Git is not installed or could not be found on the PATH."
)

# Local git config every enlistment must carry.
CONFIG_BASELINE = MappingProxyType({
    "core.autocrlf": "false",
    "core.fscache": "true",
    "core.vfs": "true",
    "core.preloadIndex": "true",
    "core.safecrlf": "false",
    "core.sparseCheckout": "true",
    "core.untrackedCache": "false",
    "core.virtualizeObjects": "true",
    "credential.validate": "false",
    "diff.autoRefreshIndex": "false",
    "gc.auto": "0",
    "gui.gcwarning": "false",
    "index.version": "4",
    "merge.stat": "false",
    "receive.autogc": "false",
})
