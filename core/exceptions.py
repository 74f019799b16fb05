"""
Exceptions raised by the planning engine
"""


class PlannerException(Exception):
    """
    Base class for planner errors
    """


class InvalidJSONException(PlannerException):
    """
    A persisted file did not contain valid JSON
    """


class InvalidPlanException(PlannerException):
    """
    A stored plan record is malformed
    """


class InvalidTemplateException(PlannerException):
    """
    A layout template breaks the structure limits or blocks the spawn
    """


class TerrainAnalysisException(PlannerException):
    """
    Terrain could not be read for a room
    """
