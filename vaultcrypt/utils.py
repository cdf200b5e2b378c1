import os
import stat
import logging
import platform

logger = logging.getLogger(__name__)

if platform.system() == "Windows":
    try:
        import ntsecuritycon
        import pywintypes
        import win32api
        import win32security
        WINDOWS_ACLS = True
    except ImportError:
        logger.warning("pywin32 is missing; vault files keep their inherited Windows ACLs.")
        WINDOWS_ACLS = False
else:
    WINDOWS_ACLS = False


def _restrict_windows_dacl(filepath: str) -> bool:
    """Give the current user the only ACE on ``filepath`` and stop inheritance."""
    if not WINDOWS_ACLS:
        return False
    try:
        owner_sid, _, _ = win32security.LookupAccountName(None, win32api.GetUserName())
        dacl = win32security.ACL()
        dacl.AddAccessAllowedAce(win32security.ACL_REVISION,
                                 ntsecuritycon.FILE_GENERIC_READ | ntsecuritycon.FILE_GENERIC_WRITE,
                                 owner_sid)
        win32security.SetNamedSecurityInfo(
            filepath, win32security.SE_FILE_OBJECT,
            win32security.DACL_SECURITY_INFORMATION | win32security.PROTECTED_DACL_SECURITY_INFORMATION,
            None, None, dacl, None)
    except pywintypes.error as e:
        logger.error(f"Cannot restrict the ACL of {filepath}: {e.strerror}")
        return False
    return True


def set_owner_only_permissions(filepath: str) -> bool:
    """
    Make a file readable and writable by its owner only.

    Returns:
        False if the permissions could not be restricted.
    """
    if platform.system() == "Windows":
        return _restrict_windows_dacl(filepath)
    try:
        os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600
    except OSError as e:
        logger.error(f"Failed to chmod {filepath}: {e}")
        return False
    return True
