"""
Mentors module - Mentor profiles, expertise, content and provisioning.
"""

from app.modules.mentors.models import ContentKind, MentorContent, MentorExpertise, MentorProfile

__all__ = ["ContentKind", "MentorContent", "MentorExpertise", "MentorProfile"]
