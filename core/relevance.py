"""Narrow a FileTree down to the files a compiler error points at."""

import posixpath

BUILD_DESCRIPTOR = "pom.xml"


def filter_relevant_files(error_text, files):
    """Return the files whose name appears in ``error_text``.

    Matching is a case-insensitive substring test on the file's basename.
    When nothing matches, every file is returned so the fixer never gets an
    empty context. pom.xml always rides along: descriptor errors cascade
    without naming the file.
    """
    lowered = (error_text or "").lower()
    relevant = {
        path: content
        for path, content in files.items()
        if posixpath.basename(path).lower() in lowered
    }

    if not relevant:
        return dict(files)

    for path, content in files.items():
        if posixpath.basename(path) == BUILD_DESCRIPTOR and path not in relevant:
            relevant[path] = content

    # keep the input order
    return {path: files[path] for path in files if path in relevant}
