"""Question catalog for the three intake stages.

The catalog is built once at import time and shared by reference.
Sessions never mutate it: adaptive follow-ups are spliced into a
session-local copy of a stage slice (see services.adaptive).
"""

from typing import Iterable, Iterator, Optional

from intake_triage.models.question import (
    AdaptiveLogic,
    AnswerOption,
    AnswerType,
    Domain,
    Question,
    Stage,
)

SUICIDALITY_TAG = "suicidality"


def _scale(*labels: str) -> tuple[AnswerOption, ...]:
    """Options scored by their position (0, 1, 2, ...)."""
    return tuple(
        AnswerOption(value=index, label=label, score=index)
        for index, label in enumerate(labels)
    )


def _choices(*pairs: tuple[str, str]) -> tuple[AnswerOption, ...]:
    """Unscored labelled options."""
    return tuple(AnswerOption(value=value, label=label) for value, label in pairs)


FREQUENCY = _scale(
    "Not at all", "A few days", "More than half the days", "Nearly every day"
)
FREQUENCY_SEVERAL = _scale(
    "Not at all", "Several days", "More than half the days", "Nearly every day"
)
NEVER_TO_STRONG = _scale("No, never", "Rarely", "Sometimes", "Often / Strong thoughts")
NEVER_TO_OFTEN = _scale("Never", "Rarely", "Sometimes", "Often")
NO_NEVER_TO_OFTEN = _scale("No, never", "Rarely", "Sometimes", "Often")
USE_FREQUENCY = _scale("Never", "Once or twice", "Monthly/Weekly", "Daily")

SUICIDE_FOLLOW_UPS = ("fu_suicide_plan", "fu_suicide_intent", "fu_suicide_means")


# History taking (background, unscored)
HISTORY_QUESTIONS: tuple[Question, ...] = (
    Question(
        id="name",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="What's your name? (Optional)",
        answer_type=AnswerType.TEXT,
        required=False,
        scored=False,
    ),
    Question(
        id="age",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="How old are you?",
        answer_type=AnswerType.NUMBER,
        scored=False,
        min_value=13,
        max_value=100,
    ),
    Question(
        id="gender",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="What is your gender?",
        answer_type=AnswerType.CHOICE,
        scored=False,
        options=_choices(
            ("male", "Male"),
            ("female", "Female"),
            ("other", "Other"),
            ("prefer_not_to_say", "Prefer not to say"),
        ),
    ),
    Question(
        id="occupation",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="What is your occupation?",
        answer_type=AnswerType.CHOICE,
        scored=False,
        options=_choices(
            ("student", "Student"),
            ("working", "Working/Employed"),
            ("unemployed", "Unemployed"),
            ("retired", "Retired"),
            ("other", "Other"),
        ),
    ),
    Question(
        id="ongoing_medication",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="Are you currently taking any medications?",
        answer_type=AnswerType.BINARY,
        scored=False,
        adaptive_logic=AdaptiveLogic(1, ("ongoing_medication_details",)),
    ),
    Question(
        id="past_psychiatric_history",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="Do you have any past psychiatric history?",
        answer_type=AnswerType.BINARY,
        scored=False,
        adaptive_logic=AdaptiveLogic(1, ("past_psychiatric_history_details",)),
    ),
    Question(
        id="past_medical_history",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="Do you have any past or ongoing medical conditions?",
        answer_type=AnswerType.BINARY,
        scored=False,
        adaptive_logic=AdaptiveLogic(1, ("past_medical_history_conditions",)),
    ),
    Question(
        id="family_psychiatric_history",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="Is there any family history of psychiatric illness?",
        answer_type=AnswerType.BINARY,
        scored=False,
    ),
    Question(
        id="trauma_history",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text=(
            "Have you experienced any trauma? "
            "(accident, abuse, grief, major stress events)"
        ),
        answer_type=AnswerType.BINARY,
        scored=False,
        adaptive_logic=AdaptiveLogic(1, ("trauma_history_details",)),
    ),
)


# Short questionnaire: ten items scored 0-3, total 0-30
SHORT_QUESTIONS: tuple[Question, ...] = (
    Question(
        id="q1_sadness",
        stage=Stage.SHORT,
        domain=Domain.DEPRESSION,
        text="In the past 2 weeks, have you often felt sad, low, or hopeless?",
        options=FREQUENCY,
        weight=0.8,
    ),
    Question(
        id="q2_anxiety",
        stage=Stage.SHORT,
        domain=Domain.ANXIETY,
        text='Do you often feel nervous, anxious, or "on edge"?',
        options=FREQUENCY,
        weight=0.7,
    ),
    Question(
        id="q3_concentration",
        stage=Stage.SHORT,
        domain=Domain.GENERAL,
        text="Do you find it hard to concentrate on studies/work or daily tasks?",
        options=FREQUENCY,
        weight=0.5,
    ),
    Question(
        id="q4_lost_interest",
        stage=Stage.SHORT,
        domain=Domain.DEPRESSION,
        text=(
            "Have you lost interest in things you usually enjoy "
            "(friends, hobbies, activities)?"
        ),
        options=FREQUENCY,
        weight=0.8,
    ),
    Question(
        id="q5_sleep",
        stage=Stage.SHORT,
        domain=Domain.FUNCTIONING,
        text="How has your sleep been recently?",
        options=_scale(
            "Normal",
            "Mild trouble falling asleep / waking up",
            "Trouble most nights",
            "Severe sleep problem (hardly sleeping / oversleeping daily)",
        ),
        weight=0.6,
    ),
    Question(
        id="q6_fatigue",
        stage=Stage.SHORT,
        domain=Domain.GENERAL,
        text="Do you feel tired or low on energy most of the time?",
        options=FREQUENCY,
        weight=0.5,
    ),
    Question(
        id="q7_social_anxiety",
        stage=Stage.SHORT,
        domain=Domain.ANXIETY,
        text=(
            "Do you feel nervous or uncomfortable in social situations "
            "(talking, presentations, meeting people)?"
        ),
        options=_scale(
            "Not at all",
            "Mild discomfort sometimes",
            "Often uncomfortable",
            "Very anxious, avoid such situations",
        ),
        weight=0.6,
    ),
    Question(
        id="q8_irritability",
        stage=Stage.SHORT,
        domain=Domain.GENERAL,
        text="Have you been more irritable or short-tempered than usual?",
        options=_scale("Not at all", "Sometimes", "Often", "Nearly every day"),
        weight=0.5,
    ),
    Question(
        id="q9_digital_escape",
        stage=Stage.SHORT,
        domain=Domain.GENERAL,
        text=(
            "Do you spend too much time on your phone/internet to escape "
            "stress (social media, gaming, etc.)?"
        ),
        options=_scale(
            "No, rarely", "Sometimes", "Frequently", "Almost every day, for hours"
        ),
        weight=0.5,
    ),
    Question(
        id="q10_suicidal_thoughts",
        stage=Stage.SHORT,
        domain=Domain.SUICIDALITY,
        text="Have you had any thoughts that life is not worth living?",
        options=_scale("Never", "Rarely", "Sometimes", "Often / Strong thoughts"),
        weight=1.0,
        is_risk_question=True,
        tags=frozenset({SUICIDALITY_TAG}),
        adaptive_logic=AdaptiveLogic(1, SUICIDE_FOLLOW_UPS),
    ),
)


# Deep screening: seventeen items scored 0-3 across seven domains, total 0-51
DEEP_QUESTIONS: tuple[Question, ...] = (
    Question(
        id="depression_q1_sadness",
        stage=Stage.DEEP,
        domain=Domain.DEPRESSION,
        text="In the past 2 weeks, have you often felt sad, low, or hopeless?",
        options=FREQUENCY_SEVERAL,
        weight=0.8,
        adaptive_logic=AdaptiveLogic(
            2, ("fu_depression_severity", "fu_depression_duration")
        ),
    ),
    Question(
        id="depression_q2_anhedonia",
        stage=Stage.DEEP,
        domain=Domain.DEPRESSION,
        text=(
            "Do you find yourself not enjoying things you usually like "
            "(hobbies, friends, activities)?"
        ),
        options=FREQUENCY_SEVERAL,
        weight=0.8,
    ),
    Question(
        id="depression_q3_sleep_energy",
        stage=Stage.DEEP,
        domain=Domain.DEPRESSION,
        text=(
            "How has your sleep and energy been? (Sleeping too much/too "
            "little, feeling tired most of the time)"
        ),
        options=_scale(
            "Normal", "Mildly disturbed", "Frequently disturbed", "Severely disturbed"
        ),
        weight=0.6,
    ),
    Question(
        id="depression_q4_suicidal_thoughts",
        stage=Stage.DEEP,
        domain=Domain.DEPRESSION,
        text=(
            "Have you had any thoughts that life is not worth living "
            "or hurting yourself?"
        ),
        options=FREQUENCY_SEVERAL,
        weight=1.0,
        is_risk_question=True,
        tags=frozenset({SUICIDALITY_TAG}),
    ),
    Question(
        id="anxiety_q5_nervousness",
        stage=Stage.DEEP,
        domain=Domain.ANXIETY,
        text='Do you often feel nervous, anxious, or "on edge"?',
        options=FREQUENCY_SEVERAL,
        weight=0.7,
        adaptive_logic=AdaptiveLogic(2, ("fu_anxiety_physical",)),
    ),
    Question(
        id="anxiety_q6_excessive_worry",
        stage=Stage.DEEP,
        domain=Domain.ANXIETY,
        text="Do you feel like you worry too much or can't stop worrying?",
        options=FREQUENCY_SEVERAL,
        weight=0.7,
    ),
    Question(
        id="anxiety_q7_restlessness",
        stage=Stage.DEEP,
        domain=Domain.ANXIETY,
        text="Do you find it hard to relax, or feel restless most of the time?",
        options=FREQUENCY_SEVERAL,
        weight=0.6,
    ),
    Question(
        id="suicide_q8_passive_thoughts",
        stage=Stage.DEEP,
        domain=Domain.SUICIDALITY,
        text="In the past month, have you wished you could go to sleep and not wake up?",
        options=NEVER_TO_STRONG,
        weight=1.0,
        is_risk_question=True,
        tags=frozenset({SUICIDALITY_TAG}),
    ),
    Question(
        id="suicide_q9_active_thoughts",
        stage=Stage.DEEP,
        domain=Domain.SUICIDALITY,
        text="Have you thought about hurting or killing yourself?",
        options=NEVER_TO_STRONG,
        weight=1.0,
        is_risk_question=True,
        is_critical_risk=True,
        tags=frozenset({SUICIDALITY_TAG}),
        adaptive_logic=AdaptiveLogic(1, SUICIDE_FOLLOW_UPS),
    ),
    Question(
        id="mania_q10_elevated_mood",
        stage=Stage.DEEP,
        domain=Domain.MANIA,
        text=(
            "Have there been times you felt unusually cheerful, full of "
            "energy, or more confident than usual?"
        ),
        options=NEVER_TO_OFTEN,
        weight=0.6,
    ),
    Question(
        id="mania_q11_decreased_sleep",
        stage=Stage.DEEP,
        domain=Domain.MANIA,
        text="Did you need less sleep during those times and still felt full of energy?",
        options=NEVER_TO_OFTEN,
        weight=0.6,
    ),
    Question(
        id="psychosis_q12_hallucinations",
        stage=Stage.DEEP,
        domain=Domain.PSYCHOSIS,
        text="Have you ever heard voices or seen things that others don't?",
        options=NO_NEVER_TO_OFTEN,
        weight=0.9,
        is_risk_question=True,
    ),
    Question(
        id="psychosis_q13_paranoia",
        stage=Stage.DEEP,
        domain=Domain.PSYCHOSIS,
        text=(
            "Do you ever feel that people are watching you or trying to "
            "control your thoughts?"
        ),
        options=NO_NEVER_TO_OFTEN,
        weight=0.9,
        is_risk_question=True,
    ),
    Question(
        id="substance_q14_alcohol_tobacco",
        stage=Stage.DEEP,
        domain=Domain.SUBSTANCE,
        text="In the past 3 months, how often have you used alcohol or smoked?",
        options=USE_FREQUENCY,
        weight=0.6,
    ),
    Question(
        id="substance_q15_drugs",
        stage=Stage.DEEP,
        domain=Domain.SUBSTANCE,
        text=(
            "In the past 3 months, how often have you used cannabis, "
            "stimulants, or other drugs?"
        ),
        options=USE_FREQUENCY,
        weight=0.7,
        adaptive_logic=AdaptiveLogic(2, ("fu_substance_impact",)),
    ),
    Question(
        id="functioning_q16_impairment",
        stage=Stage.DEEP,
        domain=Domain.FUNCTIONING,
        text=(
            "Have these feelings or problems made it harder for you at "
            "work, school, or with friends/family?"
        ),
        options=_scale("No effect", "Mild", "Moderate", "Severe"),
        weight=0.7,
    ),
    Question(
        id="sleep_q17_hours",
        stage=Stage.DEEP,
        domain=Domain.FUNCTIONING,
        text="On average, how many hours do you usually sleep per night?",
        options=_scale(
            "7-9 hrs (normal)",
            "6-7 hrs (mild issue)",
            "4-6 hrs or >9 hrs (moderate issue)",
            "<4 hrs (severe)",
        ),
        weight=0.6,
    ),
)


# Follow-ups are only ever asked when spliced in by adaptive logic. They
# never contribute to stage totals.
FOLLOW_UP_QUESTIONS: tuple[Question, ...] = (
    Question(
        id="ongoing_medication_details",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="Please tell us about your current medications:",
        answer_type=AnswerType.TEXT,
        required=False,
        scored=False,
    ),
    Question(
        id="past_psychiatric_history_details",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="Please provide details:",
        answer_type=AnswerType.TEXT,
        required=False,
        scored=False,
    ),
    Question(
        id="past_medical_history_conditions",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="Which conditions have you been diagnosed with?",
        answer_type=AnswerType.TEXT,
        required=False,
        scored=False,
    ),
    Question(
        id="trauma_history_details",
        stage=Stage.HISTORY,
        domain=Domain.BACKGROUND,
        text="Please share what you're comfortable with:",
        answer_type=AnswerType.TEXT,
        required=False,
        scored=False,
    ),
    Question(
        id="fu_suicide_plan",
        stage=Stage.DEEP,
        domain=Domain.SUICIDALITY,
        text="Do you have a specific plan for how you would hurt yourself?",
        answer_type=AnswerType.BINARY,
        weight=1.0,
        scored=False,
        is_risk_question=True,
    ),
    Question(
        id="fu_suicide_intent",
        stage=Stage.DEEP,
        domain=Domain.SUICIDALITY,
        text="How likely are you to act on these thoughts in the next week?",
        options=_scale(
            "Not at all likely",
            "Slightly likely",
            "Moderately likely",
            "Very likely",
            "Extremely likely",
        ),
        weight=1.0,
        scored=False,
        is_risk_question=True,
    ),
    Question(
        id="fu_suicide_means",
        stage=Stage.DEEP,
        domain=Domain.SUICIDALITY,
        text="Do you have access to the means to carry out such a plan?",
        answer_type=AnswerType.BINARY,
        weight=1.0,
        scored=False,
        is_risk_question=True,
    ),
    Question(
        id="fu_depression_severity",
        stage=Stage.DEEP,
        domain=Domain.DEPRESSION,
        text="On a scale of 1-10, how severe would you rate your depressive feelings?",
        options=tuple(
            AnswerOption(value=n, label=str(n), score=n) for n in range(1, 11)
        ),
        weight=0.9,
        scored=False,
    ),
    Question(
        id="fu_depression_duration",
        stage=Stage.DEEP,
        domain=Domain.DEPRESSION,
        text="How long have you been feeling this way?",
        answer_type=AnswerType.CHOICE,
        options=_choices(
            ("less_than_2_weeks", "Less than 2 weeks"),
            ("2_weeks_to_2_months", "2 weeks to 2 months"),
            ("2_to_6_months", "2 to 6 months"),
            ("more_than_6_months", "More than 6 months"),
        ),
        weight=0.7,
        scored=False,
    ),
    Question(
        id="fu_anxiety_physical",
        stage=Stage.DEEP,
        domain=Domain.ANXIETY,
        text=(
            "How often do you notice physical symptoms of anxiety "
            "(racing heart, sweating, shortness of breath)?"
        ),
        options=FREQUENCY_SEVERAL,
        weight=0.7,
        scored=False,
    ),
    Question(
        id="fu_substance_impact",
        stage=Stage.DEEP,
        domain=Domain.SUBSTANCE,
        text="How much has substance use affected your work, studies, or relationships?",
        options=_scale("Not at all", "A little", "Moderately", "Severely"),
        weight=0.7,
        scored=False,
    ),
)


class QuestionCatalog:
    """Read-only lookup over every question the intake can ask."""

    def __init__(self, questions: Iterable[Question]) -> None:
        self._questions: dict[str, Question] = {}
        self._stages: dict[Stage, tuple[Question, ...]] = {}
        follow_up_ids: set[str] = set()

        for question in questions:
            if question.id in self._questions:
                raise ValueError(f"Duplicate question id: {question.id}")
            self._questions[question.id] = question
            if question.adaptive_logic:
                follow_up_ids.update(question.adaptive_logic.follow_up_questions)

        missing = follow_up_ids - self._questions.keys()
        if missing:
            raise ValueError(f"Unknown follow-up questions: {sorted(missing)}")

        self._follow_up_ids = frozenset(follow_up_ids)
        for stage in Stage:
            self._stages[stage] = tuple(
                q for q in self._questions.values()
                if q.stage == stage and q.id not in self._follow_up_ids
            )

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._questions

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions.values())

    def __len__(self) -> int:
        return len(self._questions)

    def get(self, question_id: str) -> Optional[Question]:
        """Look up a question by id."""
        return self._questions.get(question_id)

    def for_stage(self, stage: Stage) -> tuple[Question, ...]:
        """Base ordered sequence for a stage, follow-ups excluded."""
        return self._stages[stage]

    def is_follow_up(self, question_id: str) -> bool:
        """Whether a question is only asked via adaptive logic."""
        return question_id in self._follow_up_ids

    def scored_for_stage(self, stage: Stage) -> tuple[Question, ...]:
        """Questions whose answers contribute to the stage total."""
        return tuple(q for q in self._stages[stage] if q.scored)


catalog = QuestionCatalog(
    HISTORY_QUESTIONS + SHORT_QUESTIONS + DEEP_QUESTIONS + FOLLOW_UP_QUESTIONS
)
