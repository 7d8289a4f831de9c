"""Static metadata describing the trivia service."""

APP_NAME = "Perlan Trivia"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "Perlan Trivia runs timed ten-question rounds and short learning courses "
    "from a locally cached question bank that is kept in sync with a remote document store."
)
