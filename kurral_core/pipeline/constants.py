# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.

RUN_COMPLETED = "completed"
RUN_ALREADY_RUNNING = "already_running"
RUN_NOT_FOUND = "not_found"
RUN_DELETED = "deleted"
RUN_AWAITING_ORIGINAL = "awaiting_original"

REASON_NO_FACT_CHECK_NEEDED = "pre-check: no fact check needed"
REASON_PRECHECK_FAILED_CLOSED = "pre-check failed; verification skipped and routed to review"
REASON_PRECHECK_FAILED_OPEN = "pre-check failed; treated as not needing verification"
REASON_CLAIM_EXTRACTION_FAILED = "claim extraction failed; routed to review"
REASON_FACT_CHECK_FAILED = "fact checking failed; routed to review"
REASON_NO_CLAIMS = "no extractable claims"
REASON_INHERITED = "inherited from original"
REASON_AWAITING_ORIGINAL = "original still processing"
REASON_REPOST = "repost carries no new value"
REASON_NO_COMMENTS = "no comments"
REASON_NO_VALUE_SCORE = "no value score"
REASON_EXPLANATIONS_DISABLED = "explanations disabled"

KURRAL_REASON_POST = "post_value_update"
KURRAL_REASON_COMMENT = "comment_value_update"
KURRAL_REASON_POST_COMMENT = "post_comment_update"
REASON_COMMENT_EXPLANATION = "comments carry no explanation"
REASON_NO_PARENT = "parent item missing"
REASON_PARENT_PROCESSING = "parent still processing"
REASON_RESCORE_DISABLED = "parent re-scoring disabled"
REASON_NO_COMMENT_TEXT = "no comment text to analyze"
REASON_RUN_FAILED = "pipeline run failed; routed to review"
