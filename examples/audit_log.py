"""
Audit trail for an in-memory settings document.

Every accepted write and delete on the tracked document is logged with its
path; writes to keys under "locked" are rejected.
"""
import logging

from deepproxy import wrap

logger = logging.getLogger(__name__)


class AuditHandler:
    """Logs mutations and refuses writes below the "locked" key."""

    def __init__(self):
        self.trail = []

    def set(self, root, node, path, value, receiver):
        if path[0] == "locked":
            logger.warning(f"Rejected write to {'/'.join(map(str, path))}")
            return False
        self.trail.append(("set", tuple(path), value))
        logger.info(f"set {'/'.join(map(str, path))} = {value!r}")
        return True

    def delete_property(self, root, node, path):
        self.trail.append(("delete", tuple(path)))
        logger.info(f"delete {'/'.join(map(str, path))}")
        return True


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    handler = AuditHandler()
    settings = wrap(
        {
            "display": {"theme": "dark", "panels": ["editor", "terminal"]},
            "locked": {"license": "MIT"},
        },
        handler,
    )

    settings["display"]["theme"] = "light"
    settings["display"]["panels"].append("browser")
    settings["display"]["panels"].remove("terminal")
    settings["locked"]["license"] = "GPL"
    del settings["display"]["theme"]

    print(settings)
    for entry in handler.trail:
        print(entry)


if __name__ == "__main__":
    main()
