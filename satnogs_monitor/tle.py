import logging

logger = logging.getLogger(__name__)


def parse_tle(text):
    """(name, line1, line2) triples, skipping anything that is not a complete set."""
    lines = text.encode("utf-8").decode("utf-8-sig").splitlines()
    triples = []
    i = 0
    while i < len(lines) - 2:
        if lines[i+1].startswith("1 ") and lines[i+2].startswith("2 "):
            triples.append((lines[i].strip(), lines[i+1].strip(), lines[i+2].strip()))
            i += 3
        else:
            i += 1
    return triples


def load_tle_file(path):
    with open(path, encoding="utf-8") as f:
        return parse_tle(f.read())


def norad_id(line1):
    return int(line1[2:7])


def select(triples, names):
    """Every satellite whose name contains one of `names`, each at most once."""
    found, used = [], set()
    for name in names:
        hit = False
        for sat_name, line1, line2 in triples:
            if name.upper() in sat_name.upper():
                hit = True
                if sat_name not in used:
                    found.append((sat_name, line1, line2))
                    used.add(sat_name)
        if not hit:
            logger.warning(f"'{name}' not found in TLE file")
    return found
