"""Prompt templates for personalized lesson material generation."""

LESSON_GENERATION_SYSTEM_PROMPT = """You are an expert language tutor creating interactive lesson materials.
You must respond ONLY with one valid JSON object in the exact format requested.
Do not include explanations, markdown formatting, or any text outside the JSON object."""

LESSON_GENERATION_PROMPT = """Create personalized lesson material for this student.

Student Profile:
{student_profile}

Lesson:
{lesson_context}

Fill every slot below. Each key of your JSON object must be one of these
placeholder keys, and ALL of them must be present:
{slot_instructions}

Example of the required shape (values are illustrative only):
{example_json}

HARD CONSTRAINTS:
1. Respond with JSON only, no prose before or after it.
2. Use exactly these keys: {placeholder_keys}. No other top-level keys.
3. Never return null or an empty value for any key.
4. All content must be appropriate for {level} level {language}.
{avoid_instruction}"""

# content_type -> (instruction, example value)
SLOT_SHAPES: dict[str, tuple[str, object]] = {
    "text": (
        "a paragraph of plain text (string)",
        "Short engaging paragraph...",
    ),
    "list": (
        "a list of 3-5 short strings",
        ["First item", "Second item", "Third item"],
    ),
    "vocabulary_matching": (
        "a list of 4-6 vocabulary records {word, definition, part_of_speech, examples} "
        "where examples is a list of 2-3 example sentences",
        [{
            "word": "itinerary",
            "definition": "a plan of a journey",
            "part_of_speech": "noun",
            "examples": ["Our itinerary includes three cities.", "She emailed me the itinerary."],
        }],
    ),
    "full_dialogue": (
        "a list of 6-10 dialogue lines {character, text}",
        [{"character": "Tutor", "text": "Hello! How was your trip?"},
         {"character": "Student", "text": "It was great, thank you."}],
    ),
    "fill_in_the_blanks_dialogue": (
        "a list of dialogue lines {character, text}; mark missing words with ___ in at least two lines",
        [{"character": "Clerk", "text": "Can I see your ___, please?"},
         {"character": "Traveler", "text": "Here is my passport."}],
    ),
    "matching": (
        "a list of 3-5 question/answer pairs {question, answer}",
        [{"question": "Where does the dialogue take place?", "answer": "At the hotel reception."}],
    ),
    "complete_sentence": (
        "a list of 3-5 items {sentence, options, correct_answer}; sentence contains ___, "
        "options has 3-4 choices and correct_answer is one of them",
        [{"sentence": "I ___ to Paris last year.", "options": ["go", "went", "gone"], "correct_answer": "went"}],
    ),
}
