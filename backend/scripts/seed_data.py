#!/usr/bin/env python3
"""
Demo Data Seed Script
Creates one course with two overlapping assignments and ~15 AI interaction logs.

Both assignments are active 2025-11-10 .. 2025-11-20, so the three logs in that
window are stored as unassigned and must be resolved before a draft can be
generated.

Usage:
    python -m scripts.seed_data
"""
import sys
import os
import logging

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from aiguidebook.database import SessionLocal, init_db
from aiguidebook.models.db_models import AssignmentDB
from aiguidebook.services.declarations import AssignmentService, InteractionService

logger = logging.getLogger(__name__)

COURSE_ID = "course-inf3490"
COURSE_NAME = "INF3490 - Biologically Inspired Computing"

ASSIGNMENTS = [
    {
        "assignment_id": "assign-001",
        "title": "Mandatory Assignment 1: Evolutionary Algorithms",
        "description": "Implement and compare three evolutionary algorithm variants on a benchmark function.",
        "period_start": "2025-10-20T00:00:00Z",
        "period_end": "2025-11-20T23:59:59Z",
    },
    {
        "assignment_id": "assign-002",
        "title": "Mandatory Assignment 2: Neural Network Optimization",
        "description": "Train and evaluate a neural network using backpropagation and evolutionary search.",
        "period_start": "2025-11-10T00:00:00Z",
        "period_end": "2025-12-05T23:59:59Z",
    },
]

# (id, explicit tag, tool, category, description, logged_at)
# An explicit tag is a student tag; None leaves attribution to the period lookup.
INTERACTIONS = [
    ("log-001", "assign-001", "ChatGPT", "explanation",
     "Asked ChatGPT to explain crossover operators in genetic algorithms.", "2025-10-22T10:15:00Z"),
    ("log-002", "assign-001", "ChatGPT", "code generation",
     "Generated a Python implementation of tournament selection.", "2025-10-25T14:30:00Z"),
    ("log-003", None, "GitHub Copilot", "code generation",
     "Copilot autocompleted the fitness evaluation loop.", "2025-10-28T09:00:00Z"),
    ("log-004", "assign-001", "Claude", "debugging",
     "Debugged an off-by-one error in the mutation operator with Claude.", "2025-11-02T16:45:00Z"),
    ("log-005", "assign-001", "ChatGPT", "explanation",
     "Asked ChatGPT to compare simulated annealing vs genetic algorithms.", "2025-11-05T11:00:00Z"),
    ("log-006", None, "GitHub Copilot", "code generation",
     "Copilot assisted with writing the benchmark function evaluator.", "2025-11-08T13:20:00Z"),
    # Overlap window: left unassigned
    ("log-007", None, "ChatGPT", "explanation",
     "Used ChatGPT to understand the relationship between EA and gradient descent.", "2025-11-12T10:00:00Z"),
    ("log-008", None, "Claude", "writing assistance",
     "Asked Claude to proofread the theoretical background section.", "2025-11-15T15:30:00Z"),
    ("log-009", None, "GitHub Copilot", "code generation",
     "Copilot generated a skeleton for the neural network class.", "2025-11-18T09:45:00Z"),
    ("log-010", "assign-002", "ChatGPT", "explanation",
     "ChatGPT explained backpropagation with a step-by-step example.", "2025-11-22T12:00:00Z"),
    ("log-011", None, "GitHub Copilot", "code generation",
     "Copilot autocompleted the forward-pass implementation.", "2025-11-24T14:00:00Z"),
    ("log-012", "assign-002", "Claude", "debugging",
     "Claude helped identify a vanishing gradient issue in the hidden layers.", "2025-11-26T16:00:00Z"),
    ("log-013", "assign-002", "ChatGPT", "explanation",
     "Used ChatGPT to understand adaptive learning rate methods (Adam, RMSProp).", "2025-11-28T10:30:00Z"),
    ("log-014", None, "GitHub Copilot", "code generation",
     "Copilot wrote the training loop with early stopping.", "2025-12-01T11:00:00Z"),
    ("log-015", "assign-002", "Claude", "writing assistance",
     "Claude reviewed and improved the experimental results section.", "2025-12-03T09:00:00Z"),
]


def seed(db: Session) -> bool:
    """Insert the demo data. Returns False if assignments already exist."""
    if db.query(AssignmentDB).count() > 0:
        print("Seed data already present - skipping.")
        return False

    assignments = AssignmentService(db)
    for fields in ASSIGNMENTS:
        assignments.create_assignment(course_id=COURSE_ID, course_name=COURSE_NAME, **fields)

    interactions = InteractionService(db)
    for log_id, tag, tool, category, description, logged_at in INTERACTIONS:
        interactions.record_interaction(
            tool_name=tool,
            category=category,
            description=description,
            logged_at=logged_at,
            assignment_id=tag,
            interaction_id=log_id,
        )
    db.commit()

    print(f"Seeded {len(ASSIGNMENTS)} assignments and {len(INTERACTIONS)} interaction logs.")
    print(f"  Unassigned (overlap window): {len(interactions.unassigned())}")
    return True


def main():
    logging.basicConfig(level=logging.INFO)
    init_db()

    db: Session = SessionLocal()
    try:
        seed(db)
    except Exception as e:
        print(f"Error seeding database: {e}")
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
