"""
Default intake meeting template.

The "Role Discussion | Intake Meeting" questionnaire a recruiter runs with a
new hiring client: why the role exists, what it involves, who the ideal
candidate is, and the logistics of the search.
"""

from typing import Optional

from sqlmodel import Session

from models.intake_meeting_template import IntakeMeetingTemplate
from services.intake_template_service import IntakeMeetingTemplateService

DEFAULT_TEMPLATE_NAME = "Role Discussion | Intake Meeting"
DEFAULT_TEMPLATE_DESCRIPTION = (
    "Comprehensive intake meeting template for recruiters to understand client "
    "requirements and formulate job descriptions and interview templates."
)

DEFAULT_QUESTIONS = [
    # Role Discussion
    {
        "question": "Why do you need to hire for this role?",
        "kind": "textarea",
        "category": "Role Requirements",
        "section": "Role Discussion",
        "required": True,
        "placeholder": "Describe the business need and context for this hiring decision...",
        "help_text": "Understanding the underlying need helps us craft better job descriptions and target the right candidates.",
    },
    {
        "question": "What's the structure of the current team?",
        "kind": "textarea",
        "category": "Team Structure",
        "section": "Role Discussion",
        "required": True,
        "placeholder": "Describe the team size, roles, and hierarchy...",
    },
    {
        "question": "Who does this person report to? Please include the name and the role.",
        "kind": "text",
        "category": "Reporting Structure",
        "section": "Role Discussion",
        "required": True,
        "placeholder": "e.g., John Smith - Engineering Manager",
    },
    {
        "question": "Can you describe the team dynamics and collaboration expectations (within the Group & with other Groups/Functions) for this role?",
        "kind": "textarea",
        "category": "Team Dynamics",
        "section": "Role Discussion",
        "required": True,
        "placeholder": "Describe collaboration style, communication patterns, cross-functional work...",
    },
    {
        "question": "How does it fit into the larger company structure?",
        "kind": "textarea",
        "category": "Company Structure",
        "section": "Role Discussion",
        "required": False,
        "placeholder": "Explain how this role contributes to company goals and fits within the organization...",
        "help_text": "Alternative to the team dynamics question - use whichever is more relevant.",
    },
    # Role Responsibilities
    {
        "question": "What are the main responsibilities that your new hire will have?",
        "kind": "textarea",
        "category": "Responsibilities",
        "section": "Role Responsibilities",
        "required": True,
        "placeholder": "List the key responsibilities and accountabilities...",
    },
    {
        "question": "What will their Day-to-Day consist of?",
        "kind": "textarea",
        "category": "Daily Activities",
        "section": "Role Responsibilities",
        "required": True,
        "placeholder": "Describe a typical day or week in this role...",
    },
    {
        "question": "What are the key measurements of success in this position? KPIs",
        "kind": "textarea",
        "category": "Success Metrics",
        "section": "Role Responsibilities",
        "required": True,
        "placeholder": "Define specific metrics, goals, and success indicators...",
    },
    {
        "question": "What are the top three contributions this new hire will make to the company within their first 90 & 120 days?",
        "kind": "textarea",
        "category": "Early Impact",
        "section": "Role Responsibilities",
        "required": True,
        "placeholder": "90 days: ...\n120 days: ...",
    },
    {
        "question": "What are the most significant challenges this candidate will face in this role, and how do you see them overcoming these challenges?",
        "kind": "textarea",
        "category": "Challenges",
        "section": "Role Responsibilities",
        "required": True,
        "placeholder": "Identify key challenges and expected solutions or approaches...",
    },
    # Candidate Requirements
    {
        "question": "What specific certifications/qualifications + skills/experience requirements are non-negotiable for this position?",
        "kind": "textarea",
        "category": "Hard Requirements",
        "section": "Candidate Requirements",
        "required": True,
        "placeholder": "List must-have qualifications, certifications, and technical skills...",
        "help_text": "These will be used to screen candidates at the front end of the process.",
    },
    {
        "question": "Are there any specific soft skills or interpersonal qualities that are especially important for this position?",
        "kind": "textarea",
        "category": "Soft Skills",
        "section": "Candidate Requirements",
        "required": True,
        "placeholder": "Communication style, leadership qualities, teamwork abilities...",
    },
    {
        "question": "What does a successful candidate's background and experience look like in terms of years of experience, industries they've worked in, or projects they've completed?",
        "kind": "textarea",
        "category": "Experience Profile",
        "section": "Candidate Requirements",
        "required": True,
        "placeholder": "Years of experience, relevant industries, types of projects...",
    },
    {
        "question": "Are there any specific companies you'd like to hire from, and why?",
        "kind": "textarea",
        "category": "Target Companies",
        "section": "Candidate Requirements",
        "required": False,
        "placeholder": "Target companies and reasoning...",
        "help_text": "Alternative to the experience profile question - use whichever is more relevant.",
    },
    {
        "question": "What are the non-negotiables for this position? The 5 things this person needs to have to be the right hire?",
        "kind": "textarea",
        "category": "Non-negotiables",
        "section": "Candidate Requirements",
        "required": True,
        "placeholder": "1. ...\n2. ...\n3. ...\n4. ...\n5. ...",
    },
    # Logistics
    {
        "question": "Is there any sensitivity or confidentiality around this hire we should be aware of?",
        "kind": "textarea",
        "category": "Confidentiality",
        "section": "Logistics",
        "required": False,
        "placeholder": "Any sensitive information or confidential aspects of this hiring process...",
    },
    {
        "question": "What does the Salary & Benefits package look like?",
        "kind": "textarea",
        "category": "Compensation",
        "section": "Logistics",
        "required": True,
        "placeholder": "Salary range, benefits, equity, bonuses, etc...",
    },
    {
        "question": "When do you need this candidate to start?",
        "kind": "date",
        "category": "Timeline",
        "section": "Logistics",
        "required": True,
        "placeholder": "Target start date",
    },
    {
        "question": "What is the interview process & who will be participating?",
        "kind": "textarea",
        "category": "Interview Process",
        "section": "Logistics",
        "required": True,
        "placeholder": "Describe the interview stages and participants...",
    },
    {
        "question": "What are the questions you'd like to ask this person before meeting them?",
        "kind": "textarea",
        "category": "Screening Questions",
        "section": "Logistics",
        "required": False,
        "placeholder": "Initial screening questions or phone screen topics...",
    },
]


def seed_default_template(
    db: Session,
    organization_id: Optional[str] = None,
    created_by: Optional[str] = "system",
) -> Optional[IntakeMeetingTemplate]:
    """
    Install the default intake template for a scope that has no default yet.

    Args:
        db: Database session
        organization_id: Scope to seed (None for global)
        created_by: Recorded author

    Returns:
        The created template, or None if the scope already has a default
    """
    service = IntakeMeetingTemplateService(db)
    if service.template_repo.get_default(organization_id) is not None:
        return None

    return service.create_template(
        name=DEFAULT_TEMPLATE_NAME,
        description=DEFAULT_TEMPLATE_DESCRIPTION,
        questions=DEFAULT_QUESTIONS,
        organization_id=organization_id,
        is_default=True,
        created_by=created_by,
    )
