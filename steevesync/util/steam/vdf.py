"""Read Steam VDF files"""
from steevesync.util.log import logger


def vdf_parse(steam_config_file, config):
    """Parse a Steam config file and return the contents as a dict."""
    line = " "
    while line:
        try:
            line = steam_config_file.readline()
        except UnicodeDecodeError:
            logger.error(
                "Error while reading Steam VDF file %s. Returning %s",
                steam_config_file,
                config,
            )
            return config
        if not line or line.strip() == "}":
            return config
        if not line.strip():
            continue
        while not line.strip().endswith('"'):
            nextline = steam_config_file.readline()
            if not nextline:
                break
            line = line[:-1] + nextline

        line_elements = line.strip().split('"')
        if len(line_elements) == 3:
            key = line_elements[1]
            steam_config_file.readline()  # skip '{'
            config[key] = vdf_parse(steam_config_file, {})
        else:
            try:
                config[line_elements[1]] = line_elements[3].replace("\\\\", "\\")
            except IndexError:
                logger.error("Malformed config file: %s", line)
    return config


def get_entry_case_insensitive(config_dict, path):
    """Walk nested VDF sections following `path`, ignoring key case"""
    for key, value in config_dict.items():
        if key.lower() == path[0].lower():
            if len(path) <= 1:
                return value
            return get_entry_case_insensitive(value, path[1:])
    raise KeyError(path[0])
