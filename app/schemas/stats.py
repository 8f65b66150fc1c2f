from pydantic import BaseModel
from typing import List


class CategoryCount(BaseModel):
    category: str
    count: int


class LearnerEnrollmentStats(BaseModel):
    total_enrollments: int
    total_completions: int
    average_score: float
    completion_rate: float
    favorite_categories: List[CategoryCount] = []


class UserStats(BaseModel):
    total_enrollments: int
    total_completions: int
    average_score: float
    completion_rate: float
    streak_days: int
    favorite_categories: List[CategoryCount] = []


class Streak(BaseModel):
    streak_days: int


class CompletionRate(BaseModel):
    roadmap_id: int
    completion_rate: float


class RoadmapStatistics(BaseModel):
    roadmap_id: int
    total_enrollments: int
    completed_enrollments: int
    completion_rate: float
    average_progress: float
    average_completion_days: float


class CategoryLessonBreakdown(BaseModel):
    category: str
    total_lessons: int
    completed_lessons: int
    completion_rate: float


class LearnerLessonStats(BaseModel):
    total_lessons: int
    completed_lessons: int
    completion_rate: float
    average_score: float
    total_learning_minutes: int
    category_breakdown: List[CategoryLessonBreakdown] = []


class LessonCompletionRate(BaseModel):
    lesson_id: int
    title: str
    order_index: int
    total_attempts: int
    completions: int
    completion_rate: float
