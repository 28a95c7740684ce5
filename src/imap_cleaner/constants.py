"""Constants for IMAP Cleaner."""

# --- Ports ---
SECURE_PORT = 993  # implicit TLS
PLAIN_PORT = 143  # STARTTLS or, with opt-in, plaintext

# --- Server guessing ---
PROBE_PREFIXES = ["imap.", "mail.", ""]
PROBE_TIMEOUT = 5.0  # seconds, handshake probe only
DNS_LOOKUP_ATTEMPTS = 3

# --- Transport tiers ---
LEGACY_CIPHERS = "AES128-SHA:AES256-SHA:DES-CBC3-SHA:RC4-SHA:@SECLEVEL=0"

# --- Folders ---
INBOX = "INBOX"

# --- Scanning ---
FETCH_CHUNK_SIZE = 500  # ids per FETCH command
STREAM_BUFFER_SIZE = 64  # items buffered between producer and consumer
STORE_CHUNK_SIZE = 1000  # ids per STORE +FLAGS command
GROUP_FIELDS = ["from", "to", "subject"]
NO_ADDRESS = "(none)"
ELLIPSIS = "…"
SUBJECT_LIMIT = 60
SUBJECT_KEEP = 57

# --- Display ---
PAGE_SIZE = 20
KEY_DISPLAY_WIDTH = 40
KEY_DISPLAY_KEEP = 37
AFFIRMATIVE = ("y", "yes")

# --- Archive ---
MESSAGE_EXTENSION = ".eml"
ARCHIVE_FILE_MODE = 0o600

# --- Environment ---
ENV_EMAIL = "IMAP_CLEANER_EMAIL"
ENV_PASSWORD = "IMAP_CLEANER_PASSWORD"
