"""Configuration constants for the scheduling conversation."""

# Conversation
TURN_THRESHOLD = 3  # transcript entries needed before confirming a meeting
DEFAULT_TIMEZONE = "Asia/Bangkok"
SCHEDULE_DATA_TAG = "[SCHEDULE DATA]:"
TEXT_INPUT_TAG = "[Text]:"

SCHEDULE_REQUIRED_LINES = (
    "Please upload your schedule image or provide your availability so I can "
    "suggest appropriate meeting times.",
    "You can upload a calendar screenshot or tell me your available days and times.",
)

# LLM Configuration
DEFAULT_OLLAMA_MODEL = "llama3.1:8b"
DEFAULT_OLLAMA_VISION_MODEL = "llava:7b"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_TIMEOUT = 60.0  # seconds
DEFAULT_OLLAMA_TEMPERATURE = 0.3  # low for consistent scheduling
DEFAULT_OLLAMA_TOP_P = 0.5
DEFAULT_VISION_MAX_TOKENS = 300

SYSTEM_PROMPT = "You help users schedule meetings efficiently."

# Calendar Oracle
DEFAULT_CALENDAR_URL = "http://localhost:8000/calendar/ai-query"
DEFAULT_CALENDAR_TIMEOUT = 15.0  # seconds

# Chat commands
PROMPT_TIMEOUT = 30.0  # seconds to wait for each questionnaire answer
COMMAND_PREFIX = "#"

# Prompt Templates
# Placeholders: {transcript}, {schedule}, {suggestions}, {turn_count}, {timezone}
SUMMARY_PROMPT = """You are a smart meeting scheduler with access to the user's schedule.
Given transcript: {transcript}
Schedule data: {schedule}
Previous meeting suggestions: {suggestions}
Conversation length: {turn_count}
Timezone: {timezone}

The user has provided enough information. Provide a final summary of the meeting details and confirm the scheduling. Include the confirmed meeting time, participants, and any other relevant details."""

# Placeholders: {transcript}, {schedule}, {previous_context}, {timezone}
FOLLOW_UP_PROMPT = """You are a smart meeting scheduler with access to the user's schedule.
Given transcript: {transcript}
Schedule data: {schedule}
Previous context: {previous_context}
Timezone: {timezone}

Based on the user's schedule and previous conversation, suggest 3 optimal meeting times AND generate 1-2 follow-up questions to gather more information. Format as:
1. [ISO 8601 time]
2. [ISO 8601 time]
3. [ISO 8601 time]
Follow-up: [Your questions]"""

IMAGE_ANALYSIS_SYSTEM_PROMPT = (
    "You are a helpful meeting scheduling assistant. Analyze this schedule image "
    "and extract the available days and times. Focus on identifying free time "
    "slots and busy periods. Return the information in a clear, structured format "
    "that can be used for scheduling meetings."
)
IMAGE_ANALYSIS_PROMPT = (
    "Please analyze this schedule image and extract available meeting times. "
    'Format the response as: "Available: [days and times], Busy: [days and times], '
    'Best slots: [recommended times]"'
)

# Placeholders: {busy}, {preferred_time}, {room}, {timezone}, {email},
# {duration}, {details}, {start_date}, {end_date}
PLANNER_PROMPT = """You are a smart meeting scheduler.
Given:
- Busy slots for {email}:
{busy}
- Preferred time: {preferred_time}
- Room: {room}
- Timezone: {timezone}
- Email: {email}
- Duration: {duration}
- Details: {details}

Suggest 3 optimal free 30-minute meeting slots between {start_date} and {end_date}, in ISO 8601 format.
Do not overlap busy slots. Prefer {preferred_time}."""
