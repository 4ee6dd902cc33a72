"""Top-level URL lookup for LoanDesk."""

from django.contrib import admin
from django.urls import include, path

from loan.api import loan_api_urls
from student.api import student_api_urls

apipatterns = [
    path('loan/', include(loan_api_urls)),
    path('student/', include(student_api_urls)),
]

urlpatterns = [
    path('api/', include(apipatterns)),
    path('admin/', admin.site.urls),
]
