"""Archive file naming.

Archives are named ``YYYY-MM-DD_[PREFIX]AREA_HHMMSS[POSTFIX].ext`` so that the
date, area and time of creation can be read back from the name and leftover
archives can be delivered oldest first.
"""

import os
from datetime import datetime


def make_archive_name(timestamp: datetime, area: str, prefix: str = "",
                      postfix: str = "", extension: str = ".zip") -> str:
    """Build the archive file name for a batch created at `timestamp`."""
    date_str = timestamp.strftime("%Y-%m-%d")
    time_str = timestamp.strftime("%H%M%S")
    return f"{date_str}_{prefix}{area}_{time_str}{postfix}{extension}"


def archive_sort_key(archive_path: str, extension: str, postfix: str = "") -> str:
    """Chronological sort key for an archive name.

    Strips the extension and postfix, then joins the date (up to the first
    underscore) with the time (from the last underscore), dropping every
    '-' and '_'. Names not produced by make_archive_name get a best-effort key.
    """
    filename = os.path.basename(archive_path)

    pos = filename.rfind(extension) if extension else -1
    if pos != -1:
        filename = filename[:pos]

    if postfix:
        pos = filename.rfind(postfix)
        if pos != -1:
            filename = filename[:pos]

    pos = filename.find('_')
    if pos == -1:
        return filename
    date_part = filename[:pos]
    time_part = filename[filename.rfind('_'):]

    return (date_part + time_part).replace('-', '').replace('_', '')
