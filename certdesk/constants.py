EVENT_NAME = "Vemana Vignana Yatra"
EVENT_TITLE = "VEMANA VIGNANA YATRA"
EVENT_FILE_SLUG = "YogiVemanaJayanti"
ORGANIZER_BRAND = "Kadiri Tourism"
CERTIFICATE_TITLE = "CERTIFICATE OF PARTICIPATION"
CERTIFICATE_ID_PREFIX = "YV"

CERTIFICATE_LINES = {
    "awarded": "This certificate is awarded to",
    "recognition": "in recognition of active participation and meaningful contribution to",
    "tagline": "Celebrating Kadiri's heritage through learning, dialogue, and innovation.",
    "organizer_1": "An initiative organized by the Government of Andhra Pradesh",
    "organizer_2": "on the occasion of Vemana Jayanti to promote knowledge, culture, and values.",
    "digital_note": "This is a digitally generated certificate and does not require a physical signature.",
    "hashtags": "#STEM   #SkillNext   #STEMCulture   #KnowledgeContinuity   #KadiriTourism",
}

# Heritage palette
COLOR_GOLD = "#B68A2E"
COLOR_BARK = "#2B2A1F"
COLOR_OLIVE = "#5A563E"
COLOR_FOREST = "#2F6B3C"

EMAIL_SUBJECT = "Your Yogi Vemana Jayanti Participation Certificate"
EMAIL_FROM_NAME = "Yogi Vemana Jayanti"
TEST_EMAIL_SUBJECT = "Certificate service test mail"

ARTIFACT_CONTENT_TYPE = "application/pdf"
DEFAULT_ARTIFACT_URL_TTL_SECONDS = 3600
DEFAULT_CONTAINER_NAME = "certificates"


def certificate_id(submission_id: int, year: int) -> str:
    return f"{CERTIFICATE_ID_PREFIX}-{submission_id}-{year}"
