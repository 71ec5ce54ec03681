"""Tool schemas for the transcription agent."""

SUBMIT_TRANSCRIPTION = {
    "type": "function",
    "function": {
        "name": "submit_transcription",
        "description": "Submit the verbatim transcript of the recording",
        "parameters": {
            "type": "object",
            "properties": {
                "transcription": {
                    "type": "string",
                    "description": "Verbatim transcript of everything spoken in the recording",
                },
            },
            "required": ["transcription"],
        },
    },
}
