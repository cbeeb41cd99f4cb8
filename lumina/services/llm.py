import json

from langchain_core.prompts import PromptTemplate

from lumina.core.llm_client import GatewayClient

# ── Analysis Prompt ────────────────────────────────────────────────────────

ANALYSIS_SYSTEM = "You are an expert video content analyst. Always respond with valid JSON only."

ANALYSIS_PROMPT = PromptTemplate(
    input_variables=["title"],
    template="""You are an expert video content analyst. Based on the video titled "{title}", generate a comprehensive analysis.

Since I cannot directly view the video content, please generate realistic sample data that would represent a typical video analysis. Create 5-8 meaningful segments that would represent key moments in this video.

For each segment, provide:
1. A timestamp in seconds (spread across a 2-5 minute video)
2. A detailed description of what's happening
3. Any text that might appear on screen (OCR)
4. Objects that might be detected (people, cars, text overlays, etc.)
5. A transcript snippet if applicable

Return your analysis as a JSON array with this exact structure:
[
  {{
    "timestamp_seconds": 0,
    "description": "Opening scene description",
    "ocr_text": "Any on-screen text",
    "detected_objects": {{ "person": 1, "text_overlay": 1 }},
    "transcript": "Any spoken words"
  }}
]

Make the content realistic and useful for semantic search. Only respond with the JSON array, no other text."""
)

# ── Search Ranking Prompt ──────────────────────────────────────────────────

RANKING_SYSTEM = "You are a semantic search ranking system. Always respond with valid JSON only."

RANKING_PROMPT = PromptTemplate(
    input_variables=["query", "segments"],
    template="""You are a semantic search ranking system. Given a user query and a list of video segments, rank them by relevance.

User Query: "{query}"

Video Segments:
{segments}

Analyze semantic relevance considering:
1. Direct keyword matches in description, transcript, and OCR text
2. Conceptual/semantic relevance to the query
3. Object detection relevance

Return a JSON array of objects with this exact structure (top 10 most relevant, sorted by score descending):
[
  {{
    "index": 0,
    "relevance_score": 0.95,
    "reason": "Brief explanation of why this is relevant"
  }}
]

Only include segments with relevance_score > 0.3. Only respond with the JSON array."""
)

# ── Q&A Prompt ─────────────────────────────────────────────────────────────

QA_SYSTEM = "You are a helpful video content analyst. Provide accurate answers based on video content."

QA_PROMPT = PromptTemplate(
    input_variables=["title", "context", "question"],
    template="""You are an expert video content analyst. Answer questions about the video based on the analyzed content.

Video Title: "{title}"

Analyzed Video Content (with timestamps):
{context}

User Question: "{question}"

Provide a detailed, accurate answer based ONLY on the video content above. If the question cannot be answered from the available content, say so clearly.

Include relevant timestamps in your answer when referencing specific moments.

Also return a JSON object with relevant timestamps like this:
{{"answer": "Your detailed answer here", "relevant_timestamps": ["00:00:30", "00:01:15"]}}"""
)

# ── Functions ──────────────────────────────────────────────────────────────

def describe_segments(segments) -> str:
    """Render segments as the numbered listing used in the ranking prompt."""
    blocks = []
    for idx, seg in enumerate(segments):
        blocks.append(
            f"[{idx}] Timestamp: {seg.timestamp_display}\n"
            f"Description: {seg.description or 'N/A'}\n"
            f"Transcript: {seg.transcript or 'N/A'}\n"
            f"OCR Text: {seg.ocr_text or 'N/A'}\n"
            f"Objects: {json.dumps(seg.detected_objects or {})}"
        )
    return "\n\n".join(blocks)


async def generate_segments(gateway: GatewayClient, title: str) -> str:
    """Ask the model to invent segment data for a video title."""
    prompt = ANALYSIS_PROMPT.format(title=title or "Untitled")
    return await gateway.complete(ANALYSIS_SYSTEM, prompt)


async def rank_segments(gateway: GatewayClient, query: str, segments) -> str:
    prompt = RANKING_PROMPT.format(query=query, segments=describe_segments(segments))
    return await gateway.complete(RANKING_SYSTEM, prompt)


async def answer_question(gateway: GatewayClient, title: str, context: str, question: str) -> str:
    prompt = QA_PROMPT.format(title=title, context=context, question=question)
    return await gateway.complete(QA_SYSTEM, prompt)
