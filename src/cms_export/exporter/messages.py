"""Message catalogue for report lines and export errors.

Keys ending in ``_<n>`` take n positional arguments.
"""

MESSAGES = {
    # Report lines
    "report.export_begin": "Exporting resources to {0}",
    "report.export_end": "Export finished: {0}",
    "report.exporting": "Exporting ",
    "report.exporting_group": "Exporting group ",
    "report.exporting_user": "Exporting user ",
    "report.exporting_companions": "Exporting companion files",
    "report.exporting_principals": "Exporting users and groups",
    "report.dots": " ...",
    "report.ok": "o.k.",
    "report.skipped": "skipped",
    "report.error": "Error: ",
    # Errors
    "ERR_EXPORTING_TO_FILE_1": "Error exporting to file {0}",
    "ERR_INVALID_EXPORT_FILE_1": "Cannot write export file {0}",
    "ERR_INVALID_SELECTION_1": "Invalid resource selection: {0}",
    "ERR_ADDING_FILE_1": "Error adding file {0} to the export",
    "ERR_RESERVED_ENTRY_NAME_1": "The archive entry name {0} is reserved for the manifest",
    "ERR_ADDING_CHILD_RESOURCES_1": "Error adding child resources of {0} to the export",
    "ERR_ADDING_PARENT_FOLDERS_1": "Error adding parent folders of {0} to the export",
    "ERR_APPENDING_RESOURCE_TO_MANIFEST_1": "Error appending resource {0} to the manifest",
    "ERR_WRITING_MANIFEST_0": "Error writing the export manifest",
    "ERR_READING_MANIFEST_1": "Error reading the manifest of {0}",
    "ERR_READING_PARENT_GROUP_1": "Error reading the parent group of group {0}",
    "ERR_READING_ALL_GROUPS_0": "Error reading all groups",
    "ERR_READING_GROUPS_OF_USER_1": "Error reading the groups of user {0}",
    "ERR_READING_ALL_USERS_0": "Error reading all users",
    "ERR_EXPORTING_USER_1": "Error exporting the additional info of user {0}",
}


def message(key: str, *args: object) -> str:
    """Format a catalogue entry, falling back to the key itself."""
    template = MESSAGES.get(key)
    if template is None:
        return key if not args else f"{key} {args}"
    return template.format(*args)
