"""Quiz prompt template (fixed, not user-configurable)"""

QUIZ_PROMPT = """Generate a comprehensive multiple-choice quiz based on the content of these documents. Follow these requirements exactly:

1. Create a descriptive title for the quiz that accurately reflects the main subject matter of the documents
2. Create questions covering ALL main topics and subtopics in the documents, ensuring no significant concept is omitted. Include the topic for each question (so that questions can be grouped by topic later.)
3. Include a balanced distribution of question types:
   - Basic factual recall questions
   - Comprehension questions that require understanding concepts
   - Application/analysis questions that require:
     * Applying principles to new scenarios
     * Analyzing relationships between concepts
     * Connecting ideas across different sections
   - Synthesis/evaluation questions that require:
     * Evaluating implications or consequences of key ideas
     * Comparing competing perspectives or approaches
     * Predicting outcomes based on document principles
     * Identifying unstated assumptions underlying concepts
4. For analytical questions, prioritize second and third-order thinking by asking about:
   - "What would happen if..." scenarios
   - Underlying mechanisms or reasons behind facts
   - How concepts interact in complex systems
   - Potential exceptions or limitations to stated principles
5. Each question must have exactly 4 options with exactly one correct answer
6. For EACH answer option:
   - Provide a concise "explanation" field detailing WHY the option is correct OR incorrect based on the source documents. Don't state "This is incorrect/correct". Just say the explanation. e.g. "Gravity was discovered by Isaac Newton"
   - Make incorrect options (distractors) highly plausible by using common misconceptions or partial understandings.
   - Ensure all options have approximately the same length and level of detail.
   - Maintain consistent grammar, style, and tone across all options.
   - Avoid obvious wrong answers or "joke" options.

Format your response as a JSON object with the following structure:
{
  "title": "Descriptive Quiz Title Based on Document Content",
  "questions": [
    {
      "text": "Question text here?",
      "topic": "the topic this question is about.",
      "options": [
        {"text": "Option A", "is_correct": false, "explanation": "Explanation why A is incorrect."},
        {"text": "Option B", "is_correct": true, "explanation": "Explanation why B is correct."},
        {"text": "Option C", "is_correct": false, "explanation": "Explanation why C is incorrect."},
        {"text": "Option D", "is_correct": false, "explanation": "Explanation why D is incorrect."}
      ]
    },
    ...more questions...
  ]
}
"""


def limited_prompt(max_questions: int) -> str:
    """Quiz prompt with an explicit cap on the number of questions"""
    return (
        f"{QUIZ_PROMPT}\n\nIMPORTANT: Due to size constraints, please limit your response "
        f"to no more than {max_questions} questions."
    )
