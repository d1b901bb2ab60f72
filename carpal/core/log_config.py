import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def setup_logging(level: str = "INFO"):
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # Keep the Firebase SDK's HTTP chatter out of application logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)
