"""Known opportunity sites, grouped by the type of listing they carry."""

from __future__ import annotations

from oppaggregator.models.opportunity import OpportunityType

OPPORTUNITY_SITES: dict[OpportunityType, list[str]] = {
    OpportunityType.SCHOLARSHIP: [
        "opportunitydesk.org",
        "scholarship-positions.com",
        "scholars4dev.com",
        "worldscholarshipforum.com",
        "studyportals.com",
        "scholarships.com",
        "fastweb.com",
    ],
    OpportunityType.JOB: [
        "linkedin.com/jobs",
        "indeed.com",
        "glassdoor.com",
        "monster.com",
        "ziprecruiter.com",
        "careerbuilder.com",
    ],
    OpportunityType.INTERNSHIP: [
        "internships.com",
        "chegg.com/internships",
        "wayup.com",
        "handshake.com",
        "experience.com",
    ],
    OpportunityType.FELLOWSHIP: [
        "grants.gov",
        "nsf.gov",
        "fulbrightscholar.org",
        "rhodesfund.org",
    ],
    OpportunityType.FREELANCE: [
        "upwork.com",
        "freelancer.com",
        "fiverr.com",
        "toptal.com",
        "99designs.com",
    ],
    OpportunityType.GRANT: [
        "grants.gov",
        "foundation.org",
        "grantwatch.com",
        "candid.org",
    ],
    OpportunityType.COMPETITION: [
        "challenge.gov",
        "devpost.com",
        "topcoder.com",
        "kaggle.com",
    ],
}


def all_sites() -> list[str]:
    """Every known site, de-duplicated, in catalogue order."""
    seen: dict[str, None] = {}
    for sites in OPPORTUNITY_SITES.values():
        for site in sites:
            seen.setdefault(site, None)
    return list(seen)
