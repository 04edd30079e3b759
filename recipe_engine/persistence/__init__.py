"""
Execution persistence.

One Execution row per task, one StepExecution row per recipe step and an
independent PreparationQuestionStatus side table.
"""
