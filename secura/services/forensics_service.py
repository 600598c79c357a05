import base64
from typing import Any, Dict, List, Optional


FORENSICS_SYSTEM_PROMPT = (
    "You are an image forensics assistant. Decide whether the image is an "
    "authentic photograph, harmless AI-generated or AI-enhanced content, or a "
    "harmful synthetic image (face swap, impersonation, identity manipulation). "
    "Judge the pixels only, never the filename.\n\n"
    "Return ONLY a JSON object:\n"
    "{\n"
    '  "result": "REAL" | "AI_SAFE" | "FAKE",\n'
    '  "confidence": number (0-100),\n'
    '  "label": string,\n'
    '  "summary": string (one line),\n'
    '  "details": string,\n'
    '  "artifacts": [string, ...],\n'
    '  "riskLevel": "low" | "medium" | "high"\n'
    "}"
)

FORENSICS_USER_PROMPT = (
    "Analyze this image for signs of AI generation or manipulation and give "
    "your assessment."
)

SCREENING_PROMPT = (
    "You screen images before they are posted to a social network. Decide "
    "whether the image is an authentic photo (REAL), AI-generated or heavily "
    "enhanced content that is harmless and may be posted with a label "
    "(AI_SAFE), or synthetic content that could impersonate or harm a real "
    "person and must be blocked (FAKE). Judge the pixels only. When unsure "
    "between REAL and AI_SAFE, choose AI_SAFE.\n\n"
    "Return ONLY a JSON object:\n"
    "{\n"
    '  "result": "REAL" | "AI_SAFE" | "FAKE",\n'
    '  "confidence": number (0-100),\n'
    '  "reason": string,\n'
    '  "artifacts": [string, ...],\n'
    '  "shouldBlock": boolean,\n'
    '  "riskLevel": "low" | "medium" | "high",\n'
    '  "uncertaintyFactors": [string, ...]\n'
    "}\n"
    "shouldBlock is true only for FAKE."
)


def encode_data_url(data: bytes, content_type: Optional[str] = None) -> str:
    """Base64-encode image bytes as a data URL. Non-image types are sent as JPEG."""
    mime_type = content_type or "image/jpeg"
    if not mime_type.startswith("image/"):
        mime_type = "image/jpeg"
    b64_image = base64.b64encode(data).decode("utf-8")
    return f"data:{mime_type};base64,{b64_image}"


def build_forensics_messages(data_url: str) -> List[Dict[str, Any]]:
    return [
        {"role": "system", "content": FORENSICS_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": FORENSICS_USER_PROMPT},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        },
    ]


def build_screening_messages(
    data_url: str,
    claimed_identity_name: Optional[str] = None,
    reference_image: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Screening prompt for an upload. When a reference image is supplied it is
    attached after the upload so the model can compare the two faces against
    the claimed identity.
    """
    text = SCREENING_PROMPT
    if claimed_identity_name:
        text += f"\n\nThe uploader claims this image shows: {claimed_identity_name}."
    if reference_image:
        text += (
            "\n\nThe second image is a verified reference photo of the claimed "
            "person. Treat a mismatch between the two faces as an impersonation risk."
        )

    content: List[Dict[str, Any]] = [
        {"type": "text", "text": text},
        {"type": "image_url", "image_url": {"url": data_url}},
    ]
    if reference_image:
        content.append({"type": "image_url", "image_url": {"url": reference_image}})

    return [{"role": "user", "content": content}]
