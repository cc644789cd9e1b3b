"""
Student pipeline: admission number uniqueness and class reference only.
"""

from ledger_guard.models import Student
from ledger_guard.pipelines.base import CollectionPipeline, register_pipeline
from ledger_guard.validators import is_blank


@register_pipeline
class StudentPipeline(CollectionPipeline):
    collection = "students"
    entity = "student"
    model = Student

    async def check(self, ctx, student: Student, previous):
        admission_number = student.admission_number
        if not is_blank(admission_number):
            await ctx.duplicates.check_natural_key_unique(
                self.collection,
                "admissionNumber",
                admission_number,
                f"Admission number '{admission_number}' already exists",
                exclude_key=ctx.key
            )

        if not is_blank(student.class_id):
            await ctx.duplicates.check_exists(
                "classes", student.class_id, f"Class '{student.class_id}' not found"
            )
