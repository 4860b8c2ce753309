from models.intake_meeting_template import IntakeMeetingTemplate
from models.intake_meeting_question import IntakeMeetingQuestion, QuestionKind
from models.intake_meeting_session import IntakeMeetingSession, SessionStatus
from models.intake_meeting_invitation import IntakeMeetingInvitation, InvitationStatus
from models.intake_meeting_snapshot import QuestionDefinition, TemplateSnapshot
from models.intake_artifacts import (
    ArtifactType,
    InterviewType,
    ExperienceLevel,
    GeneratedArtifact,
    GeneratedJobDescription,
    GeneratedInterviewTemplate,
    GeneratedIntakeTemplate,
)

__all__ = [
    "IntakeMeetingTemplate",
    "IntakeMeetingQuestion",
    "QuestionKind",
    "IntakeMeetingSession",
    "SessionStatus",
    "IntakeMeetingInvitation",
    "InvitationStatus",
    "QuestionDefinition",
    "TemplateSnapshot",
    "ArtifactType",
    "InterviewType",
    "ExperienceLevel",
    "GeneratedArtifact",
    "GeneratedJobDescription",
    "GeneratedInterviewTemplate",
    "GeneratedIntakeTemplate",
]
