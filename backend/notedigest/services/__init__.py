# Services package init
"""
NoteDigest Backend — Services Layer
====================================

What:  Business logic between the outer surfaces (HTTP routes, CLI) and state.
Why:   Routes and the CLI stay thin; the summary rules live in one place.

Service Inventory:
    - TextGenerator / VisionGenerator (abstract): generative capabilities
    - GeminiTextGenerator / GeminiVisionGenerator: Google Gemini implementations
    - SummaryValidator: pure accept/reject judge for candidate summaries
    - SummaryPipeline: generate → validate → retry once → accept or fail
    - NotesStore: in-memory sections, pages and summaries
    - NoteService: transcribe → page summary → section summary workflow
    - ImageService: upload validation and base64 conversion
    - transcription_accuracy: key-term scoring of transcriptions
"""
