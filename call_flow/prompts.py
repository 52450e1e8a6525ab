"""Spoken prompts for the phone intake dialogue."""

WELCOME_PROMPT = (
    "Welcome to {practice}. Please enter your ten digit health card number "
    "using your keypad followed by the pound key."
)
NO_INPUT = "We did not receive any input."

HCN_BAD_LENGTH = "The number you entered does not appear to be ten digits. Please try again."
HCN_NOT_FOUND = "We couldn't find records for that number. Please try again."
HCN_LOST = "Sorry, we could not find your health card number. Let's start again."

DOB_PROMPT = (
    "Great. To confirm your record, please enter your birth date using eight digits. "
    "For example, enter year, month, day. For June first 1985, enter one nine eight five "
    "zero six zero one. Then press the pound key."
)
DOB_NOT_RECEIVED = "We did not receive your birth date."
DOB_BAD_LENGTH = "The date you entered does not appear to be eight digits. Please try again."
DOB_UNPARSEABLE = "We could not interpret that date. Please try again."

NAME_PROMPT = (
    "Thank you. Please clearly say your first name and last name after the tone. "
    "For example, John Smith."
)
NAME_HINTS = "first name, last name"
NAME_NOT_RECEIVED = "We did not receive your name."
GOODBYE = "Thank you {name}. We have recorded your details. Goodbye."

MESSAGE_PROMPT = (
    "Thank you. Please leave your message after the beep. "
    "Press the pound key or hang up when you are finished."
)
MESSAGE_NOT_RECEIVED = "We did not receive a message. Goodbye."
MESSAGE_THANKS = "Thank you for your message. Goodbye!"

APOLOGY = "We are sorry, an application error has occurred. Please try again later."


def welcome_prompt(practice: str) -> str:
    return WELCOME_PROMPT.format(practice=practice)


def goodbye(first_name=None) -> str:
    return GOODBYE.format(name=first_name or "caller")
