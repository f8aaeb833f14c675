### grant_eligibility/eligibility_agent/prompts.py

ASSISTANT_NAME = "Eligibility creator"

ASSISTANT_DESCRIPTION = (
    "Parses the eligibility from a grant PDF into a structured format."
)

ASSISTANT_INSTRUCTIONS = (
    "You are an expert grant consultant hired to parse the eligibility "
    "criteria of a grant into a structured format. You will be given a grant "
    "PDF and asked to find the attributes that an organization must have and "
    "not have to qualify for the grant. You will also be asked to identify "
    "the types of organizations that are eligible to be the prime applicant "
    "and the types of organizations that are eligible to be a sub applicant."
)

USER_MESSAGE = (
    "Return the eligibility criteria for this grant. "
    "Here are some helpful tips:\n"
    "- Prime applicants are the main applicants for a grant. "
    "They are able to qualify by themselves.\n"
    "- Sub applicants are the secondary applicants for a grant. "
    "They usually do not qualify by themselves, but can qualify if they are "
    "paired with a prime applicant.\n"
    "- Each qualifier is an actual requirement that the applicant must meet "
    "to qualify for the grant.\n"
    "- Disqualifiers are things that prohibit the applicant from being "
    "eligible for the grant.\n"
    "Parse it out of the overall document and MAKE SURE you return it "
    "according to the format in the checkEligibility function."
)

CHECK_ELIGIBILITY_FUNCTION = "checkEligibility"


def _string_array(description: str, item_description: str) -> dict:
    return {
        "type": "array",
        "description": description,
        "items": {"type": "string", "description": item_description},
    }


CHECK_ELIGIBILITY_SCHEMA = {
    "name": CHECK_ELIGIBILITY_FUNCTION,
    "description": "Checks if an org is eligible for a grant",
    "parameters": {
        "type": "object",
        "properties": {
            "filename": {
                "type": "string",
                "description": "The filename of the grant.",
            },
            "eligibility": {
                "type": "object",
                "description": "The eligibility criteria.",
                "properties": {
                    "prime_applicant_types": _string_array(
                        "Types of organizations that are eligible to be the "
                        "prime applicant for the grant.",
                        "The type of organization.",
                    ),
                    "sub_applicant_types": _string_array(
                        "Types of organizations that are eligible to be a "
                        "sub applicant for the grant.",
                        "The type of organization.",
                    ),
                    "qualifiers": _string_array(
                        "Requirements that are necessary for an organization "
                        "to qualify for the grant.",
                        "The attribute.",
                    ),
                    "disqualifiers": _string_array(
                        "Attributes that disqualify an organization from "
                        "qualifying for the grant.",
                        "The attribute.",
                    ),
                },
            },
        },
    },
}


def assistant_tools() -> list:
    """file_search lets the assistant read the PDF; the function forces JSON output."""
    return [
        {"type": "file_search"},
        {"type": "function", "function": CHECK_ELIGIBILITY_SCHEMA},
    ]
