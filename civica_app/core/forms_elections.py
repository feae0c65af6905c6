from django import forms

from core.elections_services import PROCESS_CONFIG_FIELDS


class ElectionProcessConfigurationForm(forms.Form):
    """Parses process settings; every field is optional for partial edits."""

    name = forms.CharField(max_length=255, required=False)
    description = forms.CharField(required=False)

    registration_start = forms.DateTimeField(required=False)
    registration_end = forms.DateTimeField(required=False)
    campaign_start = forms.DateTimeField(required=False)
    campaign_end = forms.DateTimeField(required=False)
    voting_start = forms.DateTimeField(required=False)
    voting_end = forms.DateTimeField(required=False)

    enable_personero = forms.BooleanField(required=False)
    enable_contralor = forms.BooleanField(required=False)
    enable_grade_representative = forms.BooleanField(required=False)
    enable_group_representative = forms.BooleanField(required=False)
    allow_blank_vote = forms.BooleanField(required=False)

    def changes(self) -> dict[str, object]:
        """Cleaned values for the settings the caller actually sent.

        Unchecked booleans clean to False, so absent keys must not be applied.
        """
        return {
            name: value
            for name, value in self.cleaned_data.items()
            if name in PROCESS_CONFIG_FIELDS and name in self.data
        }


class ElectionProcessCreateForm(ElectionProcessConfigurationForm):
    institution_id = forms.IntegerField(min_value=1)
    academic_year_id = forms.IntegerField(min_value=1)
    name = forms.CharField(max_length=255)


class CandidateRegistrationForm(forms.Form):
    election_id = forms.IntegerField(min_value=1)
    student_id = forms.IntegerField(min_value=1, required=False)
    slogan = forms.CharField(max_length=255, required=False)
    proposals = forms.CharField(required=False)
    color = forms.RegexField(
        regex=r"^#[0-9A-Fa-f]{6}$",
        required=False,
        error_messages={"invalid": "Use a hex color such as #1e88e5."},
    )
    ballot_number = forms.IntegerField(min_value=1, max_value=32767, required=False)
    photo = forms.ImageField(required=False)
